"""Interactive prompts for settling up."""

import logging

from prompt_toolkit import PromptSession
from prompt_toolkit.document import Document
from prompt_toolkit.validation import ValidationError, Validator

from .models import OptimalPayment

logger = logging.getLogger(__name__)

QUIT_WORDS = ("q", "quit", "")


class SelectionValidator(Validator):
    """Accepts a 1-based index into a list, or a quit word."""

    def __init__(self, size: int):
        self.size = size

    def validate(self, document: Document) -> None:
        text = document.text.strip().lower()
        if text in QUIT_WORDS:
            return
        if not text.isdigit() or not 1 <= int(text) <= self.size:
            raise ValidationError(
                message=f"Enter a number between 1 and {self.size}, or q to quit",
                cursor_position=len(document.text),
            )


def parse_selection(response: str, size: int) -> int | None:
    """
    Turn a typed selection into a 0-based index.

    Returns:
        Index, or None for quit/invalid input
    """
    text = response.strip().lower()
    if text in QUIT_WORDS or not text.isdigit():
        return None
    selection = int(text) - 1
    if 0 <= selection < size:
        return selection
    return None


def select_payment_interactive(payments: list[OptimalPayment]) -> int | None:
    """
    Let the user pick one suggested payment to record.

    Args:
        payments: Suggested payments in display order

    Returns:
        Index of the selected payment (0-based), or None to cancel
    """
    if not payments:
        print("\n✓ Everyone is settled up")
        return None

    print("\n💸 Suggested payments:\n")
    for idx, payment in enumerate(payments):
        print(
            f"  [{idx + 1}] {payment.debtor.name} → {payment.creditor.name}: "
            f"{payment.amount.format()}"
        )
    print()

    session: PromptSession[str] = PromptSession()
    try:
        response = session.prompt(
            f"Select payment [1-{len(payments)}, or q to quit]: ",
            validator=SelectionValidator(len(payments)),
            validate_while_typing=False,
        )
    except (KeyboardInterrupt, EOFError):
        print("\n⏭️  Cancelled")
        return None

    selection = parse_selection(response, len(payments))
    if selection is not None:
        logger.debug(f"User selected payment {selection + 1}")
    return selection


def prompt_notes() -> str | None:
    """Ask for an optional note to attach to a settlement."""
    session: PromptSession[str] = PromptSession()
    try:
        notes = session.prompt("Notes (optional): ").strip()
    except (KeyboardInterrupt, EOFError):
        return None
    return notes or None


def confirm_payment(payment: OptimalPayment) -> bool:
    """
    Simple yes/no confirmation before recording a payment.

    Returns:
        True if confirmed, False otherwise
    """
    print(
        f"\n📝 {payment.debtor.name} pays {payment.creditor.name} "
        f"{payment.amount.format()}"
    )
    try:
        response = input("   Record this payment? [Y/n] ").strip().lower()
    except (KeyboardInterrupt, EOFError):
        return False
    return response in ("", "y", "yes")
