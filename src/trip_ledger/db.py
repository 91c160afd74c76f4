"""SQLite row store for Trip Ledger."""

import logging
import sqlite3
import uuid
from collections.abc import Sequence
from datetime import date, datetime
from pathlib import Path

from .exceptions import RowStoreError
from .models import Expense, ExpenseSplit, Member, NewSettlement, Settlement
from .money import Money

logger = logging.getLogger(__name__)


class Database:
    """SQLite database manager implementing the RowStore protocol.

    Amounts are stored as integer minor units next to their currency code.
    """

    def __init__(self, db_path: Path):
        """Initialize database connection."""
        self.db_path = db_path
        self.conn = sqlite3.connect(str(db_path))
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        self._init_schema()

    def _init_schema(self):
        """Initialize database schema."""
        cursor = self.conn.cursor()

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS trip_members (
                trip_id TEXT NOT NULL,
                user_id TEXT NOT NULL,
                full_name TEXT,
                avatar_url TEXT,
                role TEXT NOT NULL DEFAULT 'member',
                joined_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
                PRIMARY KEY (trip_id, user_id)
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expenses (
                id TEXT PRIMARY KEY,
                trip_id TEXT NOT NULL,
                paid_by TEXT NOT NULL,
                amount_minor INTEGER NOT NULL CHECK (amount_minor > 0),
                currency TEXT NOT NULL,
                description TEXT NOT NULL,
                category TEXT NOT NULL DEFAULT 'other',
                expense_date DATE NOT NULL,
                created_by TEXT,
                created_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS expense_splits (
                id TEXT PRIMARY KEY,
                expense_id TEXT NOT NULL REFERENCES expenses(id) ON DELETE CASCADE,
                user_id TEXT NOT NULL,
                share_minor INTEGER NOT NULL,
                currency TEXT NOT NULL,
                is_paid INTEGER NOT NULL DEFAULT 0
            )
        """
        )

        cursor.execute(
            """
            CREATE TABLE IF NOT EXISTS settlements (
                id TEXT PRIMARY KEY,
                trip_id TEXT NOT NULL,
                from_user_id TEXT NOT NULL,
                to_user_id TEXT NOT NULL,
                amount_minor INTEGER NOT NULL CHECK (amount_minor > 0),
                currency TEXT NOT NULL,
                notes TEXT,
                created_by TEXT,
                settled_at TIMESTAMP NOT NULL,
                CHECK (from_user_id <> to_user_id)
            )
        """
        )

        self.conn.commit()

    def close(self):
        """Close database connection."""
        self.conn.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()

    # ========================================================================
    # Member operations
    # ========================================================================

    def list_members(self, trip_id: str) -> list[Member]:
        """Get all members of a trip."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT user_id, full_name, avatar_url, role
            FROM trip_members
            WHERE trip_id = ?
            ORDER BY joined_at, user_id
            """,
            (trip_id,),
        )
        return [
            Member(
                user_id=row["user_id"],
                full_name=row["full_name"],
                avatar_url=row["avatar_url"],
                role=row["role"],
            )
            for row in cursor.fetchall()
        ]

    def add_member(self, trip_id: str, member: Member) -> Member:
        """Add a member to a trip, updating their profile if already present."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            INSERT INTO trip_members (trip_id, user_id, full_name, avatar_url, role)
            VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(trip_id, user_id) DO UPDATE SET
                full_name = excluded.full_name,
                avatar_url = excluded.avatar_url,
                role = excluded.role
            """,
            (trip_id, member.user_id, member.full_name, member.avatar_url, member.role),
        )
        self.conn.commit()
        return member

    # ========================================================================
    # Expense operations
    # ========================================================================

    def _row_to_expense(self, row: sqlite3.Row) -> Expense:
        return Expense(
            id=row["id"],
            trip_id=row["trip_id"],
            paid_by=row["paid_by"],
            amount=Money(minor_units=row["amount_minor"], currency=row["currency"]),
            description=row["description"],
            category=row["category"],
            expense_date=date.fromisoformat(row["expense_date"]),
            created_by=row["created_by"],
        )

    def list_expenses(self, trip_id: str) -> list[Expense]:
        """Get all expenses of a trip, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, paid_by, amount_minor, currency, description,
                   category, expense_date, created_by
            FROM expenses
            WHERE trip_id = ?
            ORDER BY expense_date DESC, id
            """,
            (trip_id,),
        )
        return [self._row_to_expense(row) for row in cursor.fetchall()]

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get a single expense by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, paid_by, amount_minor, currency, description,
                   category, expense_date, created_by
            FROM expenses
            WHERE id = ?
            """,
            (expense_id,),
        )
        row = cursor.fetchone()
        return self._row_to_expense(row) if row else None

    def list_expense_splits(self, expense_ids: Sequence[str]) -> list[ExpenseSplit]:
        """Get the splits of the given expenses."""
        if not expense_ids:
            return []

        placeholders = ", ".join("?" for _ in expense_ids)
        cursor = self.conn.cursor()
        cursor.execute(
            f"""
            SELECT id, expense_id, user_id, share_minor, currency, is_paid
            FROM expense_splits
            WHERE expense_id IN ({placeholders})
            ORDER BY expense_id, user_id
            """,
            tuple(expense_ids),
        )
        return [
            ExpenseSplit(
                id=row["id"],
                expense_id=row["expense_id"],
                user_id=row["user_id"],
                share_amount=Money(
                    minor_units=row["share_minor"], currency=row["currency"]
                ),
                is_paid=bool(row["is_paid"]),
            )
            for row in cursor.fetchall()
        ]

    def _insert_splits(self, splits: Sequence[ExpenseSplit]) -> None:
        self.conn.executemany(
            """
            INSERT INTO expense_splits (
                id, expense_id, user_id, share_minor, currency, is_paid
            ) VALUES (?, ?, ?, ?, ?, ?)
            """,
            [
                (
                    split.id,
                    split.expense_id,
                    split.user_id,
                    split.share_amount.minor_units,
                    split.share_amount.currency,
                    int(split.is_paid),
                )
                for split in splits
            ],
        )

    def insert_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense:
        """Insert an expense and its splits in one transaction."""
        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO expenses (
                        id, trip_id, paid_by, amount_minor, currency,
                        description, category, expense_date, created_by
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        expense.id,
                        expense.trip_id,
                        expense.paid_by,
                        expense.amount.minor_units,
                        expense.amount.currency,
                        expense.description,
                        expense.category,
                        expense.expense_date.isoformat(),
                        expense.created_by,
                    ),
                )
                self._insert_splits(splits)
        except sqlite3.IntegrityError as e:
            raise RowStoreError(f"Failed to insert expense {expense.id}: {e}") from e

        return expense

    def update_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense:
        """Overwrite an expense and replace all of its splits in one transaction."""
        try:
            with self.conn:
                cursor = self.conn.execute(
                    """
                    UPDATE expenses
                    SET paid_by = ?, amount_minor = ?, currency = ?, description = ?,
                        category = ?, expense_date = ?
                    WHERE id = ?
                    """,
                    (
                        expense.paid_by,
                        expense.amount.minor_units,
                        expense.amount.currency,
                        expense.description,
                        expense.category,
                        expense.expense_date.isoformat(),
                        expense.id,
                    ),
                )
                if cursor.rowcount == 0:
                    raise RowStoreError(f"Expense {expense.id} does not exist")
                self.conn.execute(
                    "DELETE FROM expense_splits WHERE expense_id = ?", (expense.id,)
                )
                self._insert_splits(splits)
        except sqlite3.IntegrityError as e:
            raise RowStoreError(f"Failed to update expense {expense.id}: {e}") from e

        return expense

    def delete_expense(self, expense_id: str) -> None:
        """Delete an expense; its splits are removed by cascade."""
        with self.conn:
            self.conn.execute("DELETE FROM expenses WHERE id = ?", (expense_id,))

    # ========================================================================
    # Settlement operations
    # ========================================================================

    def _row_to_settlement(self, row: sqlite3.Row) -> Settlement:
        return Settlement(
            id=row["id"],
            trip_id=row["trip_id"],
            from_user_id=row["from_user_id"],
            to_user_id=row["to_user_id"],
            amount=Money(minor_units=row["amount_minor"], currency=row["currency"]),
            notes=row["notes"],
            created_by=row["created_by"],
            settled_at=datetime.fromisoformat(row["settled_at"]),
        )

    def list_settlements(self, trip_id: str) -> list[Settlement]:
        """Get all settlements of a trip, newest first."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, from_user_id, to_user_id, amount_minor,
                   currency, notes, created_by, settled_at
            FROM settlements
            WHERE trip_id = ?
            ORDER BY settled_at DESC, id
            """,
            (trip_id,),
        )
        return [self._row_to_settlement(row) for row in cursor.fetchall()]

    def get_settlement(self, settlement_id: str) -> Settlement | None:
        """Get a settlement by id."""
        cursor = self.conn.cursor()
        cursor.execute(
            """
            SELECT id, trip_id, from_user_id, to_user_id, amount_minor,
                   currency, notes, created_by, settled_at
            FROM settlements
            WHERE id = ?
            """,
            (settlement_id,),
        )
        row = cursor.fetchone()
        if not row:
            return None
        return self._row_to_settlement(row)

    def insert_settlement(self, row: NewSettlement) -> Settlement:
        """Insert a settlement row and return it."""
        settlement = Settlement(
            id=str(uuid.uuid4()),
            trip_id=row.trip_id,
            from_user_id=row.from_user_id,
            to_user_id=row.to_user_id,
            amount=row.amount,
            notes=row.notes,
            created_by=row.created_by,
            settled_at=datetime.now(),
        )

        try:
            with self.conn:
                self.conn.execute(
                    """
                    INSERT INTO settlements (
                        id, trip_id, from_user_id, to_user_id, amount_minor,
                        currency, notes, created_by, settled_at
                    ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        settlement.id,
                        settlement.trip_id,
                        settlement.from_user_id,
                        settlement.to_user_id,
                        settlement.amount.minor_units,
                        settlement.amount.currency,
                        settlement.notes,
                        settlement.created_by,
                        settlement.settled_at.isoformat(),
                    ),
                )
        except sqlite3.IntegrityError as e:
            raise RowStoreError(f"Failed to insert settlement: {e}") from e

        logger.debug(f"Inserted settlement {settlement.id}")
        return settlement

    def delete_settlement(self, settlement_id: str) -> None:
        """Delete a settlement by id."""
        with self.conn:
            self.conn.execute("DELETE FROM settlements WHERE id = ?", (settlement_id,))
