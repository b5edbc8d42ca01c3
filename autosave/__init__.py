"""Auto-save engine: siphons round-ups from completed transactions into savings."""

__version__ = "1.0.0"
