"""Validate and persist settlements, then signal that balances are stale."""

import logging
from collections.abc import Callable, Iterable

from .aggregator import aggregate
from .exceptions import (
    CurrencyMismatchError,
    InvalidSettlementError,
    SettlementNotFoundError,
)
from .ledger import apply_past_settlements, balance_for
from .models import NewSettlement, Settlement
from .money import DEFAULT_CURRENCY, Money
from .store import RowStore

logger = logging.getLogger(__name__)

InvalidationListener = Callable[[str], None]


class SettlementRecorder:
    """Records and deletes settlements through the row store.

    The recorder never patches balances. After every successful write it
    calls each subscribed listener with the trip id so callers recompute
    from the full expense and settlement history.
    """

    def __init__(
        self,
        store: RowStore,
        listeners: Iterable[InvalidationListener] | None = None,
        epsilon_units: int = 1,
        currency: str = DEFAULT_CURRENCY,
    ):
        """
        Initialize the recorder.

        Args:
            store: Row store holding the trip's rows
            listeners: Callbacks invoked with the trip id after each change
            epsilon_units: Rounding tolerance for the overpayment check
            currency: Working currency every settlement must be in
        """
        self.store = store
        self.epsilon_units = epsilon_units
        self.currency = currency
        self._listeners: list[InvalidationListener] = list(listeners or [])

    def subscribe(self, listener: InvalidationListener) -> None:
        """Register a callback invoked with the trip id after each change."""
        self._listeners.append(listener)

    def notify(self, trip_id: str) -> None:
        """Tell every listener that balances of trip_id are stale."""
        for listener in self._listeners:
            listener(trip_id)

    def _outstanding_debt(self, trip_id: str, user_id: str) -> Money:
        """How much user_id currently owes the group (zero if nothing)."""
        expenses = self.store.list_expenses(trip_id)
        splits = self.store.list_expense_splits([expense.id for expense in expenses])
        members = self.store.list_members(trip_id)
        raw = aggregate(expenses, splits, members, currency=self.currency)
        outstanding = apply_past_settlements(raw, self.store.list_settlements(trip_id))
        balance = balance_for(outstanding, user_id, self.currency)
        return -balance if balance.is_negative() else Money.zero(self.currency)

    def record(
        self,
        trip_id: str,
        from_user_id: str,
        to_user_id: str,
        amount: Money,
        notes: str | None = None,
        created_by: str | None = None,
    ) -> Settlement:
        """
        Validate and persist a settlement.

        Overpaying (amount above the debtor's outstanding debt) is allowed;
        the ledger is global, so it only flips the sign of that balance.

        Args:
            trip_id: Trip the settlement belongs to
            from_user_id: Member who paid (debtor)
            to_user_id: Member who received (creditor)
            amount: Amount paid, must be positive
            notes: Optional free-text note
            created_by: Member recording the payment

        Returns:
            The persisted settlement

        Raises:
            InvalidSettlementError: Self-payment, non-positive amount, or
                unknown member; nothing is written
            CurrencyMismatchError: If amount is not in the trip currency
        """
        if from_user_id == to_user_id:
            raise InvalidSettlementError("payer and recipient must be different members")
        if not amount.is_positive():
            raise InvalidSettlementError(f"amount must be positive, got {amount}")
        if amount.currency != self.currency:
            raise CurrencyMismatchError(self.currency, amount.currency)

        member_ids = {member.user_id for member in self.store.list_members(trip_id)}
        for role, user_id in (("payer", from_user_id), ("recipient", to_user_id)):
            if user_id not in member_ids:
                raise InvalidSettlementError(
                    f"{role} {user_id} is not a member of trip {trip_id}"
                )

        owed = self._outstanding_debt(trip_id, from_user_id)
        if amount.minor_units > owed.minor_units + self.epsilon_units:
            logger.warning(
                f"Settlement of {amount} from {from_user_id} exceeds their "
                f"outstanding debt of {owed}; recording as overpayment"
            )

        cleaned_notes = notes.strip() if notes else None
        settlement = self.store.insert_settlement(
            NewSettlement(
                trip_id=trip_id,
                from_user_id=from_user_id,
                to_user_id=to_user_id,
                amount=amount,
                notes=cleaned_notes or None,
                created_by=created_by,
            )
        )

        logger.info(
            f"Recorded settlement {settlement.id}: {from_user_id} -> {to_user_id} "
            f"{settlement.amount}"
        )
        self.notify(trip_id)
        return settlement

    def delete(self, settlement_id: str) -> Settlement:
        """
        Delete a settlement, reversing its effect on the next recomputation.

        Whether the caller may delete it is decided by the authorization layer.

        Returns:
            The deleted settlement

        Raises:
            SettlementNotFoundError: If no settlement has this id
        """
        settlement = self.store.get_settlement(settlement_id)
        if settlement is None:
            raise SettlementNotFoundError(settlement_id)

        self.store.delete_settlement(settlement_id)
        logger.info(f"Deleted settlement {settlement_id} from trip {settlement.trip_id}")
        self.notify(settlement.trip_id)
        return settlement
