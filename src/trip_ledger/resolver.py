"""Greedy debt simplification: turn outstanding balances into payments.

The largest creditor is repeatedly matched with the largest debtor. This
keeps the number of transfers small in practice but is a heuristic, not a
proof of the global minimum (that problem is NP-hard in general).
"""

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from .exceptions import CurrencyMismatchError, UnbalancedLedgerError
from .models import Balance, OptimalPayment
from .money import Money

logger = logging.getLogger(__name__)


@dataclass
class _Position:
    """Working copy of one side of a balance, in positive minor units."""

    balance: Balance
    remaining: int


def _sort_positions(positions: list[_Position]) -> None:
    positions.sort(key=lambda p: (-p.remaining, p.balance.user_id))


def _payment(debtor: _Position, creditor: _Position, transfer: int, currency: str):
    return OptimalPayment(
        debtor=debtor.balance,
        creditor=creditor.balance,
        amount=Money(minor_units=transfer, currency=currency),
    )


def resolve(balances: Sequence[Balance], epsilon_units: int = 1) -> list[OptimalPayment]:
    """
    Compute the payments that bring every outstanding balance to zero.

    Steps:
    1. Split balances into creditors (> epsilon) and debtors (< -epsilon);
       anything within epsilon of zero is set aside as near-zero residue
    2. Sort both sides largest first, ties by member id ascending
    3. Transfer min(creditor, |debtor|) from the largest debtor to the
       largest creditor, set a side aside once it is within epsilon, re-sort
    4. Stop when either side is empty. Whatever the other side is still
       owed (or still owes) is settled in full against the residue set
       aside on the opposite side, largest first

    The output is deterministic for a given balance set and is ordered the
    way the loop produced it (largest obligations first).

    Args:
        balances: Outstanding balances of one trip
        epsilon_units: Tolerance in minor units for rounding residue

    Returns:
        Suggested payments; empty when everything is settled

    Raises:
        CurrencyMismatchError: If balances mix currencies
        UnbalancedLedgerError: If the balances do not sum to zero within
            epsilon, so some debt could never be settled
    """
    if epsilon_units < 0:
        raise ValueError("epsilon_units must not be negative")
    if not balances:
        return []

    currency = balances[0].amount.currency
    creditors: list[_Position] = []
    debtors: list[_Position] = []
    small_creditors: list[_Position] = []
    small_debtors: list[_Position] = []
    net = 0

    for balance in balances:
        if balance.amount.currency != currency:
            raise CurrencyMismatchError(currency, balance.amount.currency)
        units = balance.amount.minor_units
        net += units
        if units > epsilon_units:
            creditors.append(_Position(balance=balance, remaining=units))
        elif units < -epsilon_units:
            debtors.append(_Position(balance=balance, remaining=-units))
        elif units > 0:
            small_creditors.append(_Position(balance=balance, remaining=units))
        elif units < 0:
            small_debtors.append(_Position(balance=balance, remaining=-units))

    if abs(net) > epsilon_units:
        residual = Money(minor_units=net, currency=currency)
        logger.error(
            f"Unbalanced ledger: {len(balances)} balances sum to {residual} "
            f"instead of zero"
        )
        raise UnbalancedLedgerError(residual.to_decimal(), currency)

    _sort_positions(creditors)
    _sort_positions(debtors)

    payments: list[OptimalPayment] = []
    while creditors and debtors:
        creditor = creditors[0]
        debtor = debtors[0]
        transfer = min(creditor.remaining, debtor.remaining)
        payments.append(_payment(debtor, creditor, transfer, currency))

        creditor.remaining -= transfer
        debtor.remaining -= transfer

        for side, small in ((creditors, small_creditors), (debtors, small_debtors)):
            head = side[0]
            if head.remaining <= epsilon_units:
                side.pop(0)
                if head.remaining:
                    small.append(head)
            else:
                _sort_positions(side)

    # Whatever is left on one side is owed to or by the residue of the other
    if creditors:
        leftover, reserve = creditors, small_debtors
    else:
        leftover, reserve = debtors, small_creditors
    _sort_positions(reserve)

    while leftover and reserve:
        head = leftover[0]
        crumb = reserve[0]
        transfer = min(head.remaining, crumb.remaining)
        if leftover is creditors:
            payments.append(_payment(crumb, head, transfer, currency))
        else:
            payments.append(_payment(head, crumb, transfer, currency))

        head.remaining -= transfer
        crumb.remaining -= transfer
        if not crumb.remaining:
            reserve.pop(0)
        if not head.remaining:
            leftover.pop(0)
        _sort_positions(leftover)

    unresolved = sum(p.remaining for p in leftover)
    if unresolved > epsilon_units:
        sign = 1 if leftover is creditors else -1
        residual = Money(minor_units=sign * unresolved, currency=currency)
        logger.error(
            f"Unbalanced ledger: {residual} left after {len(payments)} payments"
        )
        raise UnbalancedLedgerError(residual.to_decimal(), currency)

    logger.debug(f"Resolved {len(balances)} balances into {len(payments)} payments")
    return payments
