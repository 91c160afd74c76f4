"""CLI for Trip Ledger using Typer."""

import logging
import sys
from datetime import date

import typer
from rich.console import Console
from rich.table import Table

from .config import build_store, load_settings
from .exceptions import TripLedgerError
from .models import Balance, Expense, NewExpense, OptimalPayment, Settlement
from .money import Money
from .service import LedgerService
from .ui import confirm_payment, prompt_notes, select_payment_interactive

app = typer.Typer(
    name="trip-ledger",
    help="Shared trip expenses: balances, suggested payments and settlements",
)

console = Console()


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    # Network requests are too noisy at INFO
    logging.getLogger("httpx").setLevel(logging.DEBUG if verbose else logging.WARNING)


def open_service() -> LedgerService:
    """Load settings and connect to the configured row store."""
    settings = load_settings()
    return LedgerService(settings, build_store(settings))


def fail(message: str, error: Exception, verbose: bool):
    """Print an error and exit; re-raise in verbose mode."""
    console.print(f"\n[bold red]{message}:[/bold red] {error}")
    if verbose:
        raise error
    sys.exit(1)


def format_money(amount: Money, use_color: bool = True) -> str:
    """
    Format money in accounting style with alignment.

    Negative amounts use parentheses: (€85.02)
    Positive amounts have spaces:      €85.02
    """
    formatted = abs(amount).format()
    if amount.is_negative():
        return f"([red]{formatted}[/red])" if use_color else f"({formatted})"
    if use_color and amount.is_positive():
        return f" [green]{formatted}[/green] "
    return f" {formatted} "


def display_balances(balances: list[Balance], current_user: str | None = None):
    """Display balances in a table, current user first."""
    ordered = sorted(balances, key=lambda b: b.user_id != current_user)

    table = Table(title="Balances", show_header=True, header_style="bold magenta")
    table.add_column("Member", style="cyan")
    table.add_column("ID", style="dim")
    table.add_column("Balance", justify="right", width=14)
    table.add_column("Status")

    for balance in ordered:
        if balance.amount.is_positive():
            status = "is owed"
        elif balance.amount.is_negative():
            status = "owes"
        else:
            status = "[dim]settled[/dim]"
        name = balance.name + (" (you)" if balance.user_id == current_user else "")
        table.add_row(name, balance.user_id, format_money(balance.amount), status)

    console.print(table)


def display_payments(payments: list[OptimalPayment]):
    """Display suggested payments in a table."""
    if not payments:
        console.print("\n[bold green]✓ All settled[/bold green]")
        return

    table = Table(
        title="Suggested Payments", show_header=True, header_style="bold magenta"
    )
    table.add_column("#", style="dim", width=4)
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=14)

    for idx, payment in enumerate(payments, start=1):
        table.add_row(
            str(idx),
            payment.debtor.name,
            payment.creditor.name,
            format_money(payment.amount, use_color=False),
        )

    console.print(table)


def display_settlements(settlements: list[Settlement]):
    """Display recorded settlements, newest first."""
    if not settlements:
        console.print("[yellow]No settlements recorded.[/yellow]")
        return

    table = Table(title="Settlements", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("From", style="cyan")
    table.add_column("To", style="cyan")
    table.add_column("Amount", justify="right", width=14)
    table.add_column("Notes", no_wrap=False)

    for settlement in settlements:
        table.add_row(
            settlement.id,
            settlement.settled_at.strftime("%Y-%m-%d %H:%M"),
            settlement.from_user_id,
            settlement.to_user_id,
            format_money(settlement.amount, use_color=False),
            settlement.notes or "",
        )

    console.print(table)


@app.command()
def balances(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    user: str | None = typer.Option(None, "--user", "-u", help="Your member ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Show outstanding balances and the payments that would settle them.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        summary = service.get_summary(trip_id, user_id=user)

        console.print(
            f"\n[bold]Total spent:[/bold] {format_money(summary.total_spent, use_color=False)}"
        )
        if summary.user_balance is not None:
            console.print(
                f"[bold]Your balance:[/bold] {format_money(summary.user_balance)}"
            )
        console.print()

        display_balances(summary.balances, current_user=user)
        display_payments(summary.payments)

    except TripLedgerError as e:
        fail("Unable to compute balances", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command("settle-up")
def settle_up(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    created_by: str | None = typer.Option(
        None, "--as", help="Member ID recording the payment"
    ),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation prompt"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Pick one of the suggested payments and record it as a settlement.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        payments = service.suggest_payments(trip_id)

        selected_idx = select_payment_interactive(payments)
        if selected_idx is None:
            return

        payment = payments[selected_idx]
        if not yes and not confirm_payment(payment):
            console.print("[yellow]Cancelled.[/yellow]")
            return

        notes = prompt_notes()
        settlement = service.record_settlement(
            trip_id,
            payment.from_user_id,
            payment.to_user_id,
            payment.amount,
            notes=notes,
            created_by=created_by,
        )

        console.print(
            f"\n[bold green]✓ Payment of {payment.amount.format()} recorded[/bold green] "
            f"[dim]({settlement.id})[/dim]"
        )
        display_payments(service.suggest_payments(trip_id))

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command()
def record(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    from_user: str = typer.Argument(..., help="Member ID who paid"),
    to_user: str = typer.Argument(..., help="Member ID who received"),
    amount: str = typer.Argument(..., help="Amount, e.g. 12.50"),
    notes: str | None = typer.Option(None, "--notes", "-n", help="Optional note"),
    created_by: str | None = typer.Option(
        None, "--as", help="Member ID recording the payment"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Record a custom payment between two members.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        money = Money.of(amount, service.currency)
        settlement = service.record_settlement(
            trip_id, from_user, to_user, money, notes=notes, created_by=created_by
        )
        console.print(
            f"\n[bold green]✓ Recorded {money.format()} from {from_user} to {to_user}"
            f"[/bold green] [dim]({settlement.id})[/dim]"
        )

    except (TripLedgerError, ValueError) as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command()
def settlements(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    List recorded settlements.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        display_settlements(service.list_settlements(trip_id))

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command("delete-settlement")
def delete_settlement(
    settlement_id: str = typer.Argument(..., help="Settlement ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Delete a recorded settlement; balances are recomputed without it.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        deleted = service.delete_settlement(settlement_id)
        console.print(
            f"\n[bold green]✓ Deleted settlement of {deleted.amount.format()}[/bold green]"
        )

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command("add-member")
def add_member(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    user_id: str = typer.Argument(..., help="Member ID"),
    name: str | None = typer.Option(None, "--name", help="Display name"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Add a member to a trip.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        member = service.add_member(trip_id, user_id, full_name=name)
        console.print(f"[green]✓ Added {member.display_name} ({member.user_id})[/green]")

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


def parse_shares(shares: list[str], currency: str) -> dict[str, Money]:
    """Parse "user=amount" pairs into custom split amounts."""
    parsed: dict[str, Money] = {}
    for share in shares:
        user_id, sep, amount = share.partition("=")
        if not sep or not user_id or not amount:
            raise ValueError(f"Invalid share {share!r}, expected USER=AMOUNT")
        parsed[user_id.strip()] = Money.of(amount.strip(), currency)
    return parsed


@app.command("add-expense")
def add_expense(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    description: str = typer.Argument(..., help="What was paid for"),
    amount: str = typer.Argument(..., help="Amount, e.g. 300.00"),
    paid_by: str = typer.Option(..., "--paid-by", "-p", help="Member ID who paid"),
    split_with: list[str] = typer.Option(
        ..., "--split-with", "-s", help="Member ID sharing the cost (repeatable)"
    ),
    share: list[str] = typer.Option(
        [], "--share", help="Custom share as USER=AMOUNT (repeatable)"
    ),
    category: str = typer.Option("other", "--category", "-c", help="Expense category"),
    expense_date: str | None = typer.Option(
        None, "--date", help="Expense date (YYYY-MM-DD), defaults to today"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Add an expense split evenly (or with custom shares) among members.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        currency = service.currency
        new_expense = NewExpense(
            trip_id=trip_id,
            paid_by=paid_by,
            amount=Money.of(amount, currency),
            description=description,
            expense_date=date.fromisoformat(expense_date) if expense_date else date.today(),
            category=category,
            created_by=paid_by,
            split_with=split_with,
            split_amounts=parse_shares(share, currency),
        )
        expense, splits = service.add_expense(new_expense)

        console.print(
            f"\n[bold green]✓ Added {expense.description}: "
            f"{expense.amount.format()}[/bold green] [dim]({expense.id})[/dim]"
        )
        for split in splits:
            console.print(f"  {split.user_id}: {split.share_amount.format()}")

    except (TripLedgerError, ValueError) as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


def display_expenses(expenses: list[Expense]):
    """Display the expenses of a trip, newest first."""
    if not expenses:
        console.print("[yellow]No expenses recorded.[/yellow]")
        return

    table = Table(title="Expenses", show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim")
    table.add_column("Date")
    table.add_column("Description")
    table.add_column("Category")
    table.add_column("Paid by", style="cyan")
    table.add_column("Amount", justify="right", width=14)

    for expense in expenses:
        table.add_row(
            expense.id,
            expense.expense_date.isoformat(),
            expense.description,
            expense.category,
            expense.paid_by,
            format_money(expense.amount, use_color=False),
        )

    console.print(table)


@app.command()
def expenses(
    trip_id: str = typer.Argument(..., help="Trip ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    List the expenses of a trip.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        display_expenses(service.list_expenses(trip_id))

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command("edit-expense")
def edit_expense(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    description: str = typer.Argument(..., help="What was paid for"),
    amount: str = typer.Argument(..., help="Amount, e.g. 300.00"),
    paid_by: str = typer.Option(..., "--paid-by", "-p", help="Member ID who paid"),
    split_with: list[str] = typer.Option(
        ..., "--split-with", "-s", help="Member ID sharing the cost (repeatable)"
    ),
    share: list[str] = typer.Option(
        [], "--share", help="Custom share as USER=AMOUNT (repeatable)"
    ),
    category: str | None = typer.Option(
        None, "--category", "-c", help="Expense category, defaults to the current one"
    ),
    expense_date: str | None = typer.Option(
        None, "--date", help="Expense date (YYYY-MM-DD), defaults to the current one"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Replace an expense's details and rebuild its splits.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        current = service.get_expense(expense_id)
        currency = service.currency
        changes = NewExpense(
            trip_id=current.trip_id,
            paid_by=paid_by,
            amount=Money.of(amount, currency),
            description=description,
            expense_date=(
                date.fromisoformat(expense_date) if expense_date else current.expense_date
            ),
            category=category or current.category,
            created_by=current.created_by,
            split_with=split_with,
            split_amounts=parse_shares(share, currency),
        )
        expense, splits = service.update_expense(expense_id, changes)

        console.print(
            f"\n[bold green]✓ Updated {expense.description}: "
            f"{expense.amount.format()}[/bold green] [dim]({expense.id})[/dim]"
        )
        for split in splits:
            console.print(f"  {split.user_id}: {split.share_amount.format()}")

    except (TripLedgerError, ValueError) as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


@app.command("delete-expense")
def delete_expense(
    expense_id: str = typer.Argument(..., help="Expense ID"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """
    Delete an expense and its splits; balances are recomputed without it.
    """
    setup_logging(verbose)
    service = None

    try:
        service = open_service()
        deleted = service.delete_expense(expense_id)
        console.print(
            f"\n[bold green]✓ Deleted {deleted.description} "
            f"({deleted.amount.format()})[/bold green]"
        )

    except TripLedgerError as e:
        fail("Error", e, verbose)
    finally:
        if service is not None:
            service.store.close()


if __name__ == "__main__":
    app()
