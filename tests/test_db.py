"""Tests for the SQLite row store."""

from datetime import date

import pytest

from trip_ledger.db import Database
from trip_ledger.exceptions import RowStoreError
from trip_ledger.models import Expense, ExpenseSplit, Member, NewSettlement
from trip_ledger.money import Money


@pytest.fixture
def db(tmp_path):
    """Create a temporary database."""
    database = Database(tmp_path / "test.db")
    yield database
    database.close()


def make_expense(id: str, trip_id: str = "t1", amount: str = "30.00") -> Expense:
    return Expense(
        id=id,
        trip_id=trip_id,
        paid_by="a",
        amount=Money.of(amount),
        description=f"Expense {id}",
        category="food",
        expense_date=date(2025, 6, int(id[-1])),
        created_by="a",
    )


def make_split(id: str, expense_id: str, user_id: str, share: str) -> ExpenseSplit:
    return ExpenseSplit(
        id=id, expense_id=expense_id, user_id=user_id, share_amount=Money.of(share)
    )


class TestMembers:
    def test_add_and_list(self, db):
        db.add_member("t1", Member(user_id="a", full_name="Alice"))
        db.add_member("t1", Member(user_id="b", full_name="Bob", avatar_url="x.png"))
        db.add_member("t2", Member(user_id="c"))

        members = db.list_members("t1")

        assert [m.user_id for m in members] == ["a", "b"]
        assert members[1].avatar_url == "x.png"

    def test_add_is_upsert(self, db):
        db.add_member("t1", Member(user_id="a", full_name="Alice"))
        db.add_member("t1", Member(user_id="a", full_name="Alice B."))

        assert [m.full_name for m in db.list_members("t1")] == ["Alice B."]


class TestExpenses:
    def test_round_trip(self, db):
        expense = make_expense("e1")
        splits = [
            make_split("s1", "e1", "a", "15.00"),
            make_split("s2", "e1", "b", "15.00"),
        ]

        db.insert_expense(expense, splits)

        assert db.list_expenses("t1") == [expense]
        assert db.list_expense_splits(["e1"]) == splits

    def test_newest_first(self, db):
        db.insert_expense(make_expense("e1"), [])
        db.insert_expense(make_expense("e2"), [])

        assert [e.id for e in db.list_expenses("t1")] == ["e2", "e1"]

    def test_splits_filtered_by_expense(self, db):
        db.insert_expense(make_expense("e1"), [make_split("s1", "e1", "a", "30.00")])
        db.insert_expense(make_expense("e2"), [make_split("s2", "e2", "a", "30.00")])

        assert [s.id for s in db.list_expense_splits(["e2"])] == ["s2"]
        assert db.list_expense_splits([]) == []

    def test_delete_cascades_to_splits(self, db):
        db.insert_expense(make_expense("e1"), [make_split("s1", "e1", "a", "30.00")])

        db.delete_expense("e1")

        assert db.list_expenses("t1") == []
        assert db.list_expense_splits(["e1"]) == []

    def test_duplicate_id_rejected(self, db):
        db.insert_expense(make_expense("e1"), [])

        with pytest.raises(RowStoreError):
            db.insert_expense(make_expense("e1"), [])

    def test_get_expense(self, db):
        expense = make_expense("e1")
        db.insert_expense(expense, [])

        assert db.get_expense("e1") == expense
        assert db.get_expense("nope") is None

    def test_update_replaces_splits(self, db):
        db.insert_expense(
            make_expense("e1"),
            [make_split("s1", "e1", "a", "15.00"), make_split("s2", "e1", "b", "15.00")],
        )
        edited = make_expense("e1", amount="40.00").model_copy(
            update={"description": "Dinner", "paid_by": "b"}
        )

        db.update_expense(edited, [make_split("s3", "e1", "c", "40.00")])

        assert db.get_expense("e1") == edited
        assert [s.id for s in db.list_expense_splits(["e1"])] == ["s3"]

    def test_update_missing_expense(self, db):
        with pytest.raises(RowStoreError):
            db.update_expense(make_expense("e9"), [make_split("s1", "e9", "a", "30.00")])

        assert db.list_expense_splits(["e9"]) == []


class TestSettlements:
    def test_insert_get_delete(self, db):
        settlement = db.insert_settlement(
            NewSettlement(
                trip_id="t1",
                from_user_id="b",
                to_user_id="a",
                amount=Money.of("12.34"),
                notes="bank transfer",
                created_by="b",
            )
        )

        assert db.get_settlement(settlement.id) == settlement
        assert db.list_settlements("t1") == [settlement]
        assert db.list_settlements("t2") == []

        db.delete_settlement(settlement.id)

        assert db.get_settlement(settlement.id) is None
        assert db.list_settlements("t1") == []

    def test_amount_stored_exactly(self, db):
        settlement = db.insert_settlement(
            NewSettlement(
                trip_id="t1", from_user_id="b", to_user_id="a", amount=Money.of("0.10")
            )
        )

        assert db.get_settlement(settlement.id).amount.minor_units == 10
