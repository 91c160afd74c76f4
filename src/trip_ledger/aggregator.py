"""Reduce expenses and their splits into per-member net balances.

This is a pure function module: inputs are never mutated and every call
returns freshly built Balance objects.
"""

import logging
import uuid
from collections.abc import Iterable, Mapping, Sequence

from .exceptions import InvalidExpenseError
from .models import Balance, Expense, ExpenseSplit, Member
from .money import DEFAULT_CURRENCY, Money

logger = logging.getLogger(__name__)


def sort_balances(balances: Iterable[Balance]) -> list[Balance]:
    """Sort by absolute amount descending, ties by member id ascending."""
    return sorted(balances, key=lambda b: (-abs(b.amount.minor_units), b.user_id))


def aggregate(
    expenses: Sequence[Expense],
    splits: Sequence[ExpenseSplit],
    members: Sequence[Member],
    currency: str | None = None,
) -> list[Balance]:
    """
    Compute raw per-member balances from expenses and splits.

    The payer of each expense is credited the full amount and every split
    participant is debited their share. A payer who also participates nets
    out automatically. Members without activity get a zero balance.

    Rows that reference unknown members are skipped with a warning in a way
    that keeps the total at zero:
    - an expense whose payer is not a member is skipped with its splits
    - a split for a non-member is skipped and its share is taken back from
      the payer's credit

    Args:
        expenses: Expenses of one trip
        splits: Splits belonging to those expenses
        members: Current trip members
        currency: Working currency; defaults to the first expense's currency

    Returns:
        Balances sorted by absolute amount descending

    Raises:
        CurrencyMismatchError: If expenses/splits mix currencies
    """
    members_by_id = {member.user_id: member for member in members}
    if currency is None:
        currency = expenses[0].currency if expenses else DEFAULT_CURRENCY

    running: dict[str, Money] = {
        user_id: Money.zero(currency) for user_id in members_by_id
    }

    counted: dict[str, Expense] = {}
    for expense in expenses:
        if expense.paid_by not in members_by_id:
            logger.warning(
                f"Skipping expense {expense.id}: payer {expense.paid_by} "
                f"is not a member of trip {expense.trip_id}"
            )
            continue
        counted[expense.id] = expense
        running[expense.paid_by] += expense.amount

    for split in splits:
        parent = counted.get(split.expense_id)
        if parent is None:
            logger.warning(
                f"Skipping split {split.id}: expense {split.expense_id} "
                f"is unknown or was skipped"
            )
            continue

        if split.user_id not in members_by_id:
            logger.warning(
                f"Skipping split {split.id}: user {split.user_id} is not a "
                f"trip member; share removed from payer {parent.paid_by}"
            )
            running[parent.paid_by] -= split.share_amount
            continue

        running[split.user_id] -= split.share_amount

    balances = [
        Balance(
            user_id=user_id,
            name=members_by_id[user_id].display_name,
            avatar_url=members_by_id[user_id].avatar_url,
            amount=amount,
        )
        for user_id, amount in running.items()
    ]

    logger.debug(
        f"Aggregated {len(expenses)} expenses and {len(splits)} splits "
        f"into {len(balances)} balances"
    )
    return sort_balances(balances)


def allocate_splits(
    expense_id: str,
    amount: Money,
    participant_ids: Sequence[str],
    custom_amounts: Mapping[str, Money] | None = None,
) -> list[ExpenseSplit]:
    """
    Build split rows for an expense.

    Participants with a custom amount get exactly that; the remainder is
    divided evenly among the others. Participants are ordered by ascending
    id, so the lowest id absorbs any rounding residual first.

    Raises:
        InvalidExpenseError: If participants are empty or duplicated, or the
            custom amounts do not fit the expense amount
    """
    if not participant_ids:
        raise InvalidExpenseError("An expense needs at least one participant")
    if len(set(participant_ids)) != len(participant_ids):
        raise InvalidExpenseError("Expense participants must be unique")

    custom = dict(custom_amounts or {})
    strangers = sorted(set(custom) - set(participant_ids))
    if strangers:
        raise InvalidExpenseError(
            f"Custom amounts given for non-participants: {', '.join(strangers)}"
        )
    if any(share.is_negative() for share in custom.values()):
        raise InvalidExpenseError("Custom split amounts must not be negative")

    pinned = sum(custom.values(), Money.zero(amount.currency))
    remainder = amount - pinned
    if remainder.is_negative():
        raise InvalidExpenseError(
            f"Custom split amounts ({pinned}) exceed the expense amount ({amount})"
        )

    ordered = sorted(participant_ids)
    even_ids = [user_id for user_id in ordered if user_id not in custom]
    shares: dict[str, Money] = dict(custom)
    if even_ids:
        shares.update(zip(even_ids, remainder.split_evenly(len(even_ids)), strict=True))
    elif not remainder.is_zero():
        raise InvalidExpenseError(
            f"Custom split amounts ({pinned}) must add up to the expense amount ({amount})"
        )

    return [
        ExpenseSplit(
            id=str(uuid.uuid4()),
            expense_id=expense_id,
            user_id=user_id,
            share_amount=shares[user_id],
        )
        for user_id in ordered
    ]


def check_split_sums(
    expenses: Sequence[Expense],
    splits: Sequence[ExpenseSplit],
    tolerance_units: int = 1,
) -> list[str]:
    """
    Find expenses whose split shares do not add up to the expense amount.

    Returns:
        Ids of expenses off by more than tolerance_units minor units
    """
    totals: dict[str, Money] = {
        expense.id: Money.zero(expense.currency) for expense in expenses
    }
    for split in splits:
        if split.expense_id in totals:
            totals[split.expense_id] += split.share_amount

    mismatched = []
    for expense in expenses:
        drift = abs(expense.amount - totals[expense.id])
        if drift.minor_units > tolerance_units:
            mismatched.append(expense.id)
    return mismatched


def total_spent(expenses: Sequence[Expense], currency: str = DEFAULT_CURRENCY) -> Money:
    """Sum of all expense amounts."""
    return sum((expense.amount for expense in expenses), Money.zero(currency))
