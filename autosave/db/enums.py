# db/enums.py

import enum
from sqlalchemy import TypeDecorator, String


class TriggerType(str, enum.Enum):
    """Strategy an auto-save rule uses to compute the siphoned amount."""
    ROUND_UP = "round_up"           # Round the spend up to the next multiple of N
    PERCENTAGE = "percentage"       # Fixed share of the spend
    FIXED_AMOUNT = "fixed_amount"   # Constant per transaction
    SMART_SAVE = "smart_save"       # Tiered heuristic on the spend size


class DestinationType(str, enum.Enum):
    SAVINGS_ACCOUNT = "savings_account"
    INVESTMENT_VAULT = "investment_vault"
    SPECIFIC_STOCK = "specific_stock"


class RoundUpStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class TransactionType(str, enum.Enum):
    PAYMENT = "payment"
    TRADE = "trade"
    TRANSFER = "transfer"


class ContributionSource(str, enum.Enum):
    MANUAL = "manual"
    AUTO_SAVE = "auto_save"
    ROUND_UP = "round_up"
    TRANSFER = "transfer"


class GoalPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class GoalCategory(str, enum.Enum):
    EMERGENCY = "emergency"
    VACATION = "vacation"
    EDUCATION = "education"
    HOME = "home"
    CAR = "car"
    WEDDING = "wedding"
    RETIREMENT = "retirement"
    OTHER = "other"


class Currency(str, enum.Enum):
    GHS = "GHS"
    USD = "USD"


class InsightType(str, enum.Enum):
    SPENDING_PATTERN = "spending_pattern"
    SAVING_OPPORTUNITY = "saving_opportunity"
    GOAL_PROGRESS = "goal_progress"
    MARKET_OPPORTUNITY = "market_opportunity"


class InsightPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class AnalyticsPeriod(str, enum.Enum):
    WEEK = "week"
    MONTH = "month"
    QUARTER = "quarter"
    YEAR = "year"


# Enums are stored as their string values (plain VARCHAR columns work on both
# Postgres and SQLite without native ENUM types)
class EnumString(TypeDecorator):
    """Ensures Enum values are stored as strings."""
    impl = String
    cache_ok = True

    def __init__(self, enum_type, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.enum_type = enum_type

    def process_bind_param(self, value, dialect):
        if value is not None:
            return self.enum_type(value).value
        return value

    def process_result_value(self, value, dialect):
        if value is not None:
            return self.enum_type(value)
        return value
