"""Trip Ledger - Shared trip expenses, balances and debt settlement."""

__version__ = "0.1.0"

from .aggregator import aggregate, allocate_splits
from .config import Settings, load_settings
from .db import Database
from .ledger import apply_past_settlements
from .models import (
    Balance,
    Expense,
    ExpenseSplit,
    Member,
    OptimalPayment,
    Settlement,
)
from .money import Money
from .recorder import SettlementRecorder
from .resolver import resolve
from .service import LedgerService

__all__ = [
    "Settings",
    "load_settings",
    "Database",
    "Money",
    "Balance",
    "Expense",
    "ExpenseSplit",
    "Member",
    "OptimalPayment",
    "Settlement",
    "aggregate",
    "allocate_splits",
    "apply_past_settlements",
    "resolve",
    "SettlementRecorder",
    "LedgerService",
]
