"""
Domain exceptions for the auto-save engine.

Each carries the HTTP status the API layer answers with; services raise them
without knowing about HTTP.
"""


class AutoSaveError(Exception):
    """Base class for auto-save failures."""

    status_code = 400

    def __init__(self, detail: str):
        super().__init__(detail)
        self.detail = detail


class ValidationError(AutoSaveError):
    """Malformed rule settings, non-positive amounts or a bad transaction event."""

    status_code = 422


class NotFoundError(AutoSaveError):
    """Rule, goal, round-up or destination does not exist (or belongs to another user)."""

    status_code = 404

    def __init__(self, resource: str, resource_id: str):
        super().__init__(f"{resource} {resource_id} not found")
        self.resource = resource
        self.resource_id = resource_id


class DestinationUnavailableError(AutoSaveError):
    """Credit, vault contribution or stock purchase failed or timed out."""

    status_code = 502

    def __init__(self, destination_type: str, destination_id: str, reason: str = ""):
        detail = f"Destination {destination_type}:{destination_id} unavailable"
        if reason:
            detail = f"{detail}: {reason}"
        super().__init__(detail)
        self.destination_type = destination_type
        self.destination_id = destination_id


class InvalidTransitionError(AutoSaveError):
    """Illegal round-up status change (terminal states have no exits)."""

    status_code = 409

    def __init__(self, round_up_id: str, current: str, requested: str):
        super().__init__(f"Round-up {round_up_id} cannot move from {current} to {requested}")
