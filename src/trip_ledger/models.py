"""Pydantic domain models for Trip Ledger."""

from datetime import date, datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from .money import Money

ExpenseCategory = Literal[
    "food", "transport", "accommodation", "activities", "shopping", "other"
]

UNKNOWN_MEMBER_NAME = "Unknown member"

# ============================================================================
# Trip Models (rows owned by the row store)
# ============================================================================


class Member(BaseModel):
    """A trip member with their public profile."""

    user_id: str
    full_name: str | None = None
    avatar_url: str | None = None
    role: Literal["admin", "member"] = "member"

    @property
    def display_name(self) -> str:
        return self.full_name or UNKNOWN_MEMBER_NAME


class Expense(BaseModel):
    """A group expense paid by one member."""

    id: str
    trip_id: str
    paid_by: str
    amount: Money
    description: str
    expense_date: date
    category: ExpenseCategory = "other"
    created_by: str | None = None

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, value: Money) -> Money:
        if not value.is_positive():
            raise ValueError("Expense amount must be greater than zero")
        return value

    @property
    def currency(self) -> str:
        return self.amount.currency


class ExpenseSplit(BaseModel):
    """One member's share of an expense.

    ``is_paid`` is a legacy column; paid status is derived from settlements.
    """

    id: str
    expense_id: str
    user_id: str
    share_amount: Money
    is_paid: bool = False


class Settlement(BaseModel):
    """A recorded real-world payment from a debtor to a creditor."""

    id: str
    trip_id: str
    from_user_id: str  # debtor
    to_user_id: str  # creditor
    amount: Money
    notes: str | None = None
    created_by: str | None = None
    settled_at: datetime = Field(default_factory=datetime.now)

    @field_validator("amount")
    @classmethod
    def amount_must_be_positive(cls, value: Money) -> Money:
        if not value.is_positive():
            raise ValueError("Settlement amount must be greater than zero")
        return value

    @model_validator(mode="after")
    def parties_must_differ(self) -> "Settlement":
        if self.from_user_id == self.to_user_id:
            raise ValueError("A member cannot settle with themselves")
        return self


# ============================================================================
# Insert payloads
# ============================================================================


class NewSettlement(BaseModel):
    """Payload for inserting a settlement row."""

    trip_id: str
    from_user_id: str
    to_user_id: str
    amount: Money
    notes: str | None = None
    created_by: str | None = None


class NewExpense(BaseModel):
    """Payload for creating an expense together with its splits.

    ``split_with`` lists participant ids; ``split_amounts`` optionally pins
    custom shares for some of them, the rest share the remainder evenly.
    """

    trip_id: str
    paid_by: str
    amount: Money
    description: str
    expense_date: date = Field(default_factory=date.today)
    category: ExpenseCategory = "other"
    created_by: str | None = None
    split_with: list[str]
    split_amounts: dict[str, Money] = Field(default_factory=dict)


# ============================================================================
# Derived Models (never persisted)
# ============================================================================


class Balance(BaseModel):
    """A member's net position: positive = owed to them, negative = they owe."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    name: str
    avatar_url: str | None = None
    amount: Money

    def with_amount(self, amount: Money) -> "Balance":
        """Return a copy holding a different amount."""
        return self.model_copy(update={"amount": amount})

    @property
    def is_settled(self) -> bool:
        return self.amount.is_zero()


class OptimalPayment(BaseModel):
    """A suggested transfer from a debtor to a creditor."""

    model_config = ConfigDict(frozen=True)

    debtor: Balance  # pays ("from")
    creditor: Balance  # receives ("to")
    amount: Money

    @property
    def from_user_id(self) -> str:
        return self.debtor.user_id

    @property
    def to_user_id(self) -> str:
        return self.creditor.user_id


class LedgerSummary(BaseModel):
    """Everything the settle-up view needs for one trip at one moment."""

    model_config = ConfigDict(frozen=True)

    trip_id: str
    balances: list[Balance]
    payments: list[OptimalPayment]
    settlements: list[Settlement]
    total_spent: Money
    user_balance: Money | None = None

    @property
    def all_settled(self) -> bool:
        return not self.payments
