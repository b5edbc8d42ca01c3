from .auto_save_rule import AutoSaveRule
from .round_up import RoundUpTransaction
from .savings_account import SavingsAccount, SavingsAccountCredit
from .savings_goal import SavingsGoal, GoalContribution

__all__ = [
    "AutoSaveRule",
    "RoundUpTransaction",
    "SavingsAccount",
    "SavingsAccountCredit",
    "SavingsGoal",
    "GoalContribution",
]
