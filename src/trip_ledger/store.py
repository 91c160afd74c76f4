"""Row-store collaborator interface used by the ledger engine."""

from collections.abc import Sequence
from typing import Protocol

from .models import Expense, ExpenseSplit, Member, NewSettlement, Settlement


class RowStore(Protocol):
    """Read/write access to the rows the ledger is computed from.

    Implementations: ``trip_ledger.db.Database`` (local SQLite) and
    ``trip_ledger.clients.supabase.SupabaseClient`` (managed REST backend).
    """

    def list_members(self, trip_id: str) -> list[Member]: ...

    def list_expenses(self, trip_id: str) -> list[Expense]: ...

    def list_expense_splits(self, expense_ids: Sequence[str]) -> list[ExpenseSplit]: ...

    def list_settlements(self, trip_id: str) -> list[Settlement]: ...

    def get_settlement(self, settlement_id: str) -> Settlement | None: ...

    def insert_settlement(self, row: NewSettlement) -> Settlement: ...

    def delete_settlement(self, settlement_id: str) -> None: ...

    def add_member(self, trip_id: str, member: Member) -> Member: ...

    def get_expense(self, expense_id: str) -> Expense | None: ...

    def insert_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense: ...

    def update_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense: ...

    def delete_expense(self, expense_id: str) -> None: ...

    def close(self) -> None: ...
