"""Service layer that composes the row store and the ledger engine.

The engine functions are pure; this module fetches a fresh snapshot from the
row store for every call and never caches derived balances.
"""

import logging
import uuid

from .aggregator import aggregate, allocate_splits, check_split_sums, total_spent
from .config import Settings
from .exceptions import (
    CurrencyMismatchError,
    ExpenseNotFoundError,
    InvalidExpenseError,
)
from .ledger import apply_past_settlements, balance_for
from .models import (
    Balance,
    Expense,
    ExpenseSplit,
    LedgerSummary,
    Member,
    NewExpense,
    OptimalPayment,
    Settlement,
)
from .money import Money
from .recorder import InvalidationListener, SettlementRecorder
from .resolver import resolve
from .store import RowStore

logger = logging.getLogger(__name__)


class LedgerService:
    """Use cases for the shared-expense ledger of a trip."""

    def __init__(self, settings: Settings, store: RowStore):
        """Initialize the ledger service."""
        self.settings = settings
        self.store = store
        self.recorder = SettlementRecorder(
            store,
            epsilon_units=settings.balance_epsilon_units,
            currency=settings.default_currency,
        )

    @property
    def currency(self) -> str:
        return self.settings.default_currency

    def _fetch_snapshot(
        self, trip_id: str
    ) -> tuple[list[Expense], list[ExpenseSplit], list[Member], list[Settlement]]:
        """Fetch every row the ledger depends on."""
        expenses = self.store.list_expenses(trip_id)
        splits = self.store.list_expense_splits([expense.id for expense in expenses])
        members = self.store.list_members(trip_id)
        settlements = self.store.list_settlements(trip_id)

        logger.info(
            f"Fetched trip {trip_id}: {len(expenses)} expenses, {len(splits)} splits, "
            f"{len(members)} members, {len(settlements)} settlements"
        )

        mismatched = check_split_sums(
            expenses, splits, tolerance_units=self.settings.balance_epsilon_units
        )
        for expense_id in mismatched:
            logger.warning(f"Splits of expense {expense_id} do not add up to its amount")

        return expenses, splits, members, settlements

    def _outstanding(
        self,
        expenses: list[Expense],
        splits: list[ExpenseSplit],
        members: list[Member],
        settlements: list[Settlement],
    ) -> list[Balance]:
        raw = aggregate(expenses, splits, members, currency=self.currency)
        return apply_past_settlements(raw, settlements)

    def compute_balances(self, trip_id: str) -> list[Balance]:
        """
        Compute outstanding balances for a trip.

        Returns:
            Balances after folding in recorded settlements, largest first
        """
        return self._outstanding(*self._fetch_snapshot(trip_id))

    def suggest_payments(self, trip_id: str) -> list[OptimalPayment]:
        """
        Compute the payments that would settle the trip.

        Raises:
            UnbalancedLedgerError: If balances cannot be fully settled
        """
        return resolve(
            self.compute_balances(trip_id),
            epsilon_units=self.settings.balance_epsilon_units,
        )

    def get_summary(self, trip_id: str, user_id: str | None = None) -> LedgerSummary:
        """
        Build the full settle-up view of a trip from one snapshot.

        Args:
            trip_id: The trip
            user_id: Optional member whose own balance should be included
        """
        expenses, splits, members, settlements = self._fetch_snapshot(trip_id)
        balances = self._outstanding(expenses, splits, members, settlements)
        payments = resolve(balances, epsilon_units=self.settings.balance_epsilon_units)

        return LedgerSummary(
            trip_id=trip_id,
            balances=balances,
            payments=payments,
            settlements=settlements,
            total_spent=total_spent(expenses, self.currency),
            user_balance=(
                balance_for(balances, user_id, self.currency) if user_id else None
            ),
        )

    def list_settlements(self, trip_id: str) -> list[Settlement]:
        """Recorded settlements of a trip, newest first."""
        return self.store.list_settlements(trip_id)

    def record_settlement(
        self,
        trip_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Money,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> Settlement:
        """Record a payment between two members."""
        return self.recorder.record(
            trip_id,
            from_user_id,
            to_user_id,
            amount,
            notes=notes,
            created_by=created_by,
        )

    def delete_settlement(self, settlement_id: str) -> Settlement:
        """Delete a recorded payment."""
        return self.recorder.delete(settlement_id)

    def add_member(
        self,
        trip_id: str,
        user_id: str,
        full_name: str | None = None,
        avatar_url: str | None = None,
    ) -> Member:
        """Add a member to a trip."""
        member = Member(user_id=user_id, full_name=full_name, avatar_url=avatar_url)
        self.store.add_member(trip_id, member)
        logger.info(f"Added member {user_id} to trip {trip_id}")
        return member

    def _build_expense(
        self, expense_id: str, new_expense: NewExpense, created_by: str | None
    ) -> tuple[Expense, list[ExpenseSplit]]:
        """Validate an expense against the trip and build its split rows."""
        if new_expense.amount.currency != self.currency:
            raise CurrencyMismatchError(self.currency, new_expense.amount.currency)

        member_ids = {
            member.user_id for member in self.store.list_members(new_expense.trip_id)
        }
        if new_expense.paid_by not in member_ids:
            raise InvalidExpenseError(
                f"Payer {new_expense.paid_by} is not a member of trip {new_expense.trip_id}"
            )
        outsiders = sorted(set(new_expense.split_with) - member_ids)
        if outsiders:
            raise InvalidExpenseError(
                f"Not members of trip {new_expense.trip_id}: {', '.join(outsiders)}"
            )

        try:
            expense = Expense(
                id=expense_id,
                trip_id=new_expense.trip_id,
                paid_by=new_expense.paid_by,
                amount=new_expense.amount,
                description=new_expense.description,
                expense_date=new_expense.expense_date,
                category=new_expense.category,
                created_by=created_by,
            )
        except ValueError as e:
            raise InvalidExpenseError(str(e)) from e

        splits = allocate_splits(
            expense.id,
            expense.amount,
            new_expense.split_with,
            new_expense.split_amounts,
        )
        return expense, splits

    def add_expense(self, new_expense: NewExpense) -> tuple[Expense, list[ExpenseSplit]]:
        """
        Create an expense and its splits.

        Raises:
            CurrencyMismatchError: If the amount is not in the trip currency
            InvalidExpenseError: If the payer or a participant is not a member,
                or the split cannot be built
        """
        expense, splits = self._build_expense(
            str(uuid.uuid4()), new_expense, new_expense.created_by
        )
        self.store.insert_expense(expense, splits)

        logger.info(
            f"Added expense {expense.id} ({expense.amount}) paid by {expense.paid_by}, "
            f"split {len(splits)} ways"
        )
        self.recorder.notify(expense.trip_id)
        return expense, splits

    def update_expense(
        self, expense_id: str, changes: NewExpense
    ) -> tuple[Expense, list[ExpenseSplit]]:
        """
        Edit an expense and rebuild its splits from scratch.

        The expense keeps its id, trip and creator. Whether the caller may
        edit it is decided by the authorization layer.

        Raises:
            ExpenseNotFoundError: If no expense has this id
            CurrencyMismatchError: If the amount is not in the trip currency
            InvalidExpenseError: If the edited expense fails validation
        """
        current = self.store.get_expense(expense_id)
        if current is None:
            raise ExpenseNotFoundError(expense_id)
        if changes.trip_id != current.trip_id:
            raise InvalidExpenseError(
                f"Expense {expense_id} belongs to trip {current.trip_id}"
            )

        expense, splits = self._build_expense(expense_id, changes, current.created_by)
        self.store.update_expense(expense, splits)

        logger.info(
            f"Updated expense {expense_id} ({expense.amount}), split {len(splits)} ways"
        )
        self.recorder.notify(expense.trip_id)
        return expense, splits

    def delete_expense(self, expense_id: str) -> Expense:
        """
        Delete an expense together with its splits.

        Returns:
            The deleted expense

        Raises:
            ExpenseNotFoundError: If no expense has this id
        """
        expense = self.store.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)

        self.store.delete_expense(expense_id)
        logger.info(f"Deleted expense {expense_id} from trip {expense.trip_id}")
        self.recorder.notify(expense.trip_id)
        return expense

    def subscribe(self, listener: InvalidationListener) -> None:
        """Register a callback invoked with the trip id after any change."""
        self.recorder.subscribe(listener)

    def list_expenses(self, trip_id: str) -> list[Expense]:
        """Expenses of a trip, newest first."""
        return self.store.list_expenses(trip_id)

    def get_expense(self, expense_id: str) -> Expense:
        """
        Look up one expense.

        Raises:
            ExpenseNotFoundError: If no expense has this id
        """
        expense = self.store.get_expense(expense_id)
        if expense is None:
            raise ExpenseNotFoundError(expense_id)
        return expense
