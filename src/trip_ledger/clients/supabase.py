"""REST client for the managed Postgres row store (PostgREST dialect)."""

import json
import logging
from collections.abc import Sequence
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any

import httpx

from ..exceptions import RowStoreError
from ..models import Expense, ExpenseSplit, Member, NewSettlement, Settlement
from ..money import DEFAULT_CURRENCY, Money

logger = logging.getLogger(__name__)


POSTGREST_RESERVED = set(',.:()"\\ ')


def _quote(value: str) -> str:
    """Double-quote a filter value that contains PostgREST reserved characters."""
    if not POSTGREST_RESERVED.intersection(value):
        return value
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f'"{escaped}"'


def _in_filter(values: Sequence[str]) -> str:
    """PostgREST ``in`` filter, e.g. in.(a,b,c)."""
    return f"in.({','.join(_quote(value) for value in values)})"


class SupabaseClient:
    """Client for the trip database's REST endpoint.

    Implements the RowStore protocol. Numeric columns are decoded straight
    to Decimal so amounts never pass through float. Split and settlement
    rows carry no currency column; they use the trip's working currency.
    """

    def __init__(
        self,
        url: str,
        api_key: str,
        currency: str = DEFAULT_CURRENCY,
        transport: httpx.BaseTransport | None = None,
    ):
        """Initialize the REST client."""
        self.currency = currency
        self.client = httpx.Client(
            base_url=f"{url.rstrip('/')}/rest/v1",
            headers={
                "apikey": api_key,
                "Authorization": f"Bearer {api_key}",
                "Content-Type": "application/json",
            },
            timeout=30.0,
            transport=transport,
        )

    def close(self):
        """Close the HTTP client."""
        self.client.close()

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        """Send a request and decode the JSON body (None when empty).

        Failures are not retried; they surface as RowStoreError.
        """
        try:
            response = self.client.request(method, path, **kwargs)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(f"Row store API error: {e}")
            logger.error(f"Response body: {e.response.text}")
            raise RowStoreError(
                f"{method} {path} failed with status {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.error(f"HTTP error talking to row store: {e}")
            raise RowStoreError(f"{method} {path} failed: {e}") from e

        if not response.content:
            return None
        return json.loads(response.text, parse_float=Decimal)

    def _money(self, value: Decimal | int | str, currency: str | None = None) -> Money:
        return Money.of(value, currency or self.currency)

    # ========================================================================
    # Members
    # ========================================================================

    def list_members(self, trip_id: str) -> list[Member]:
        """Get trip members joined with their profiles."""
        rows = self._request(
            "GET",
            "/trip_members",
            params={
                "select": "user_id,role",
                "trip_id": f"eq.{trip_id}",
                "order": "joined_at.asc",
            },
        )
        if not rows:
            return []

        user_ids = [row["user_id"] for row in rows]
        profiles = self._request(
            "GET",
            "/profiles",
            params={
                "select": "user_id,full_name,avatar_url",
                "user_id": _in_filter(user_ids),
            },
        )
        profiles_by_user = {profile["user_id"]: profile for profile in profiles or []}

        members = []
        for row in rows:
            profile = profiles_by_user.get(row["user_id"], {})
            members.append(
                Member(
                    user_id=row["user_id"],
                    full_name=profile.get("full_name"),
                    avatar_url=profile.get("avatar_url"),
                    role=row.get("role", "member"),
                )
            )
        return members

    def add_member(self, trip_id: str, member: Member) -> Member:
        """Add a user to a trip (profiles are owned by the auth service)."""
        self._request(
            "POST",
            "/trip_members",
            json={"trip_id": trip_id, "user_id": member.user_id, "role": member.role},
            headers={"Prefer": "resolution=merge-duplicates,return=minimal"},
        )
        return member

    # ========================================================================
    # Expenses
    # ========================================================================

    def _parse_expense(self, row: dict[str, Any]) -> Expense:
        return Expense(
            id=row["id"],
            trip_id=row["trip_id"],
            paid_by=row["paid_by"],
            amount=self._money(row["amount"], row.get("currency")),
            description=row["description"],
            expense_date=row["expense_date"],
            category=row.get("category") or "other",
            created_by=row.get("created_by"),
        )

    def list_expenses(self, trip_id: str) -> list[Expense]:
        """Get all expenses of a trip, newest first."""
        rows = self._request(
            "GET",
            "/expenses",
            params={
                "select": "*",
                "trip_id": f"eq.{trip_id}",
                "order": "expense_date.desc",
            },
        )
        return [self._parse_expense(row) for row in rows or []]

    def get_expense(self, expense_id: str) -> Expense | None:
        """Get an expense by id."""
        rows = self._request(
            "GET",
            "/expenses",
            params={"select": "*", "id": f"eq.{expense_id}"},
        )
        if not rows:
            return None
        return self._parse_expense(rows[0])

    def list_expense_splits(self, expense_ids: Sequence[str]) -> list[ExpenseSplit]:
        """Get the splits of the given expenses."""
        if not expense_ids:
            return []

        rows = self._request(
            "GET",
            "/expense_splits",
            params={"select": "*", "expense_id": _in_filter(expense_ids)},
        )
        return [
            ExpenseSplit(
                id=row["id"],
                expense_id=row["expense_id"],
                user_id=row["user_id"],
                share_amount=self._money(row["amount"]),
                is_paid=row.get("is_paid", False),
            )
            for row in rows or []
        ]

    def _expense_fields(self, expense: Expense) -> dict[str, Any]:
        return {
            "paid_by": expense.paid_by,
            "amount": str(expense.amount.to_decimal()),
            "currency": expense.currency,
            "description": expense.description,
            "category": expense.category,
            "expense_date": expense.expense_date.isoformat(),
        }

    def _insert_splits(self, splits: Sequence[ExpenseSplit]) -> None:
        if not splits:
            return
        self._request(
            "POST",
            "/expense_splits",
            json=[
                {
                    "id": split.id,
                    "expense_id": split.expense_id,
                    "user_id": split.user_id,
                    "amount": str(split.share_amount.to_decimal()),
                    "is_paid": split.is_paid,
                }
                for split in splits
            ],
            headers={"Prefer": "return=minimal"},
        )

    def insert_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense:
        """Insert an expense, then its splits."""
        self._request(
            "POST",
            "/expenses",
            json={
                "id": expense.id,
                "trip_id": expense.trip_id,
                "created_by": expense.created_by,
                **self._expense_fields(expense),
            },
            headers={"Prefer": "return=minimal"},
        )
        self._insert_splits(splits)
        logger.info(f"Inserted expense {expense.id} with {len(splits)} splits")
        return expense

    def update_expense(self, expense: Expense, splits: Sequence[ExpenseSplit]) -> Expense:
        """Update an expense, then replace its splits."""
        updated = self._request(
            "PATCH",
            "/expenses",
            params={"id": f"eq.{expense.id}"},
            json={
                **self._expense_fields(expense),
                "updated_at": datetime.now(timezone.utc).isoformat(),
            },
            headers={"Prefer": "return=representation"},
        )
        if not updated:
            raise RowStoreError(f"Expense {expense.id} does not exist")

        self._request(
            "DELETE", "/expense_splits", params={"expense_id": f"eq.{expense.id}"}
        )
        self._insert_splits(splits)
        logger.info(f"Updated expense {expense.id} with {len(splits)} splits")
        return expense

    def delete_expense(self, expense_id: str) -> None:
        """Delete an expense and its splits."""
        self._request(
            "DELETE", "/expense_splits", params={"expense_id": f"eq.{expense_id}"}
        )
        self._request("DELETE", "/expenses", params={"id": f"eq.{expense_id}"})

    # ========================================================================
    # Settlements
    # ========================================================================

    def _parse_settlement(self, row: dict[str, Any]) -> Settlement:
        return Settlement(
            id=row["id"],
            trip_id=row["trip_id"],
            from_user_id=row["from_user_id"],
            to_user_id=row["to_user_id"],
            amount=self._money(row["amount"]),
            notes=row.get("notes"),
            created_by=row.get("created_by"),
            settled_at=row["settled_at"],
        )

    def list_settlements(self, trip_id: str) -> list[Settlement]:
        """Get all settlements of a trip, newest first."""
        rows = self._request(
            "GET",
            "/settlements",
            params={
                "select": "*",
                "trip_id": f"eq.{trip_id}",
                "order": "settled_at.desc",
            },
        )
        return [self._parse_settlement(row) for row in rows or []]

    def get_settlement(self, settlement_id: str) -> Settlement | None:
        """Get a settlement by id."""
        rows = self._request(
            "GET",
            "/settlements",
            params={"select": "*", "id": f"eq.{settlement_id}"},
        )
        if not rows:
            return None
        return self._parse_settlement(rows[0])

    def insert_settlement(self, row: NewSettlement) -> Settlement:
        """Insert a settlement and return the stored row."""
        created = self._request(
            "POST",
            "/settlements",
            json={
                "trip_id": row.trip_id,
                "from_user_id": row.from_user_id,
                "to_user_id": row.to_user_id,
                "amount": str(row.amount.to_decimal()),
                "notes": row.notes,
                "created_by": row.created_by,
            },
            headers={"Prefer": "return=representation"},
        )
        if not created:
            raise RowStoreError("Settlement insert returned no row")
        return self._parse_settlement(created[0])

    def delete_settlement(self, settlement_id: str) -> None:
        """Delete a settlement by id."""
        self._request("DELETE", "/settlements", params={"id": f"eq.{settlement_id}"})
