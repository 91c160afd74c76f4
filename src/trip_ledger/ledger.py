"""Fold recorded settlements into raw balances to get outstanding balances."""

import logging
from collections.abc import Sequence

from .aggregator import sort_balances
from .models import Balance, Settlement
from .money import DEFAULT_CURRENCY, Money

logger = logging.getLogger(__name__)


def apply_settlement(balances: Sequence[Balance], settlement: Settlement) -> list[Balance]:
    """
    Apply one settlement to a balance set.

    The debtor's balance rises by the amount and the creditor's falls by the
    same amount. If either party is missing from the balance set the
    settlement is skipped with a warning.

    Raises:
        CurrencyMismatchError: If the settlement currency differs
    """
    by_user = {balance.user_id: balance for balance in balances}
    debtor = by_user.get(settlement.from_user_id)
    creditor = by_user.get(settlement.to_user_id)

    if debtor is None or creditor is None:
        logger.warning(
            f"Skipping settlement {settlement.id}: "
            f"{settlement.from_user_id} -> {settlement.to_user_id} "
            f"references a user without a balance"
        )
        return list(balances)

    by_user[debtor.user_id] = debtor.with_amount(debtor.amount + settlement.amount)
    by_user[creditor.user_id] = creditor.with_amount(
        creditor.amount - settlement.amount
    )
    return list(by_user.values())


def apply_past_settlements(
    raw: Sequence[Balance], settlements: Sequence[Settlement]
) -> list[Balance]:
    """
    Compute outstanding balances from raw balances and recorded settlements.

    Pure fold: a deleted settlement simply does not appear in the input.
    Every settlement moves exactly its amount from one balance to another,
    so the total stays at zero.

    Returns:
        Outstanding balances sorted by absolute amount descending
    """
    outstanding = list(raw)
    for settlement in settlements:
        outstanding = apply_settlement(outstanding, settlement)

    if settlements:
        logger.debug(f"Folded {len(settlements)} settlements into balances")
    return sort_balances(outstanding)


def ledger_total(balances: Sequence[Balance]) -> Money:
    """Sum of all balances; zero for a consistent ledger."""
    currency = balances[0].amount.currency if balances else DEFAULT_CURRENCY
    return sum((balance.amount for balance in balances), Money.zero(currency))


def balance_for(
    balances: Sequence[Balance], user_id: str, currency: str = DEFAULT_CURRENCY
) -> Money:
    """A single member's balance, zero if they have none."""
    for balance in balances:
        if balance.user_id == user_id:
            return balance.amount
    return Money.zero(currency)
