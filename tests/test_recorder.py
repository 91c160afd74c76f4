"""Tests for the SettlementRecorder."""

from datetime import date

import pytest

from trip_ledger.aggregator import aggregate, allocate_splits
from trip_ledger.db import Database
from trip_ledger.exceptions import (
    CurrencyMismatchError,
    InvalidSettlementError,
    SettlementNotFoundError,
)
from trip_ledger.ledger import apply_past_settlements
from trip_ledger.models import Expense, Member
from trip_ledger.money import Money
from trip_ledger.recorder import SettlementRecorder

TRIP = "trip-1"


@pytest.fixture
def db(tmp_path):
    """Temporary database with a three-member trip and one 300.00 expense."""
    database = Database(tmp_path / "test.db")
    for uid, name in (("a", "Alice"), ("b", "Bob"), ("c", "Carol")):
        database.add_member(TRIP, Member(user_id=uid, full_name=name))

    expense = Expense(
        id="e1",
        trip_id=TRIP,
        paid_by="a",
        amount=Money.of("300.00"),
        description="Hotel",
        expense_date=date(2025, 6, 1),
    )
    database.insert_expense(
        expense, allocate_splits("e1", expense.amount, ["a", "b", "c"])
    )
    yield database
    database.close()


@pytest.fixture
def invalidations():
    """Collects trip ids passed to the invalidation listener."""
    return []


@pytest.fixture
def recorder(db, invalidations):
    return SettlementRecorder(db, listeners=[invalidations.append])


def outstanding(db: Database) -> dict[str, Money]:
    """Current outstanding balances straight from the store."""
    expenses = db.list_expenses(TRIP)
    splits = db.list_expense_splits([e.id for e in expenses])
    raw = aggregate(expenses, splits, db.list_members(TRIP))
    balances = apply_past_settlements(raw, db.list_settlements(TRIP))
    return {b.user_id: b.amount for b in balances}


class TestRecord:
    """Recording settlements."""

    def test_records_and_notifies(self, db, recorder, invalidations):
        """A valid payment is persisted and listeners are told to recompute."""
        settlement = recorder.record(
            TRIP, "b", "a", Money.of("100.00"), notes="  cash  ", created_by="b"
        )

        assert db.get_settlement(settlement.id) == settlement
        assert settlement.notes == "cash"
        assert settlement.created_by == "b"
        assert invalidations == [TRIP]
        assert outstanding(db) == {
            "a": Money.of("100.00"),
            "b": Money.zero(),
            "c": Money.of("-100.00"),
        }

    def test_blank_notes_dropped(self, recorder):
        settlement = recorder.record(TRIP, "b", "a", Money.of("1.00"), notes="   ")

        assert settlement.notes is None

    def test_subscribe(self, recorder, invalidations):
        later = []
        recorder.subscribe(later.append)

        recorder.record(TRIP, "c", "a", Money.of("50.00"))

        assert invalidations == [TRIP]
        assert later == [TRIP]

    def test_overpayment_allowed(self, db, recorder, caplog):
        """Paying more than owed flips the payer's balance and logs a warning."""
        recorder.record(TRIP, "b", "a", Money.of("150.00"))

        assert outstanding(db)["b"] == Money.of("50.00")
        assert "overpayment" in caplog.text

    def test_racing_settlements_both_succeed(self, db, recorder):
        """Two members settling the same debt both get recorded."""
        recorder.record(TRIP, "b", "a", Money.of("100.00"))
        recorder.record(TRIP, "b", "a", Money.of("100.00"))

        assert len(db.list_settlements(TRIP)) == 2
        assert outstanding(db)["b"] == Money.of("100.00")


class TestValidation:
    """Rejected settlements never reach the store."""

    def test_self_payment(self, db, recorder, invalidations):
        with pytest.raises(InvalidSettlementError, match="different members"):
            recorder.record(TRIP, "a", "a", Money.of("10.00"))

        assert db.list_settlements(TRIP) == []
        assert invalidations == []

    @pytest.mark.parametrize("amount", ["0", "-5.00"])
    def test_non_positive_amount(self, db, recorder, amount):
        with pytest.raises(InvalidSettlementError, match="positive"):
            recorder.record(TRIP, "b", "a", Money.of(amount))

        assert db.list_settlements(TRIP) == []

    def test_unknown_member(self, db, recorder):
        with pytest.raises(InvalidSettlementError, match="ghost"):
            recorder.record(TRIP, "ghost", "a", Money.of("10.00"))

        with pytest.raises(InvalidSettlementError, match="recipient"):
            recorder.record(TRIP, "b", "ghost", Money.of("10.00"))

        assert db.list_settlements(TRIP) == []

    def test_wrong_currency(self, db, recorder):
        with pytest.raises(CurrencyMismatchError):
            recorder.record(TRIP, "b", "a", Money.of("10.00", "USD"))

        assert db.list_settlements(TRIP) == []

    def test_reason_attribute(self, recorder):
        with pytest.raises(InvalidSettlementError) as exc_info:
            recorder.record(TRIP, "b", "b", Money.of("1"))

        assert "different" in exc_info.value.reason


class TestDelete:
    """Deleting settlements."""

    def test_round_trip_restores_balances(self, db, recorder, invalidations):
        """Record then delete leaves balances exactly as before."""
        before = outstanding(db)

        settlement = recorder.record(TRIP, "c", "a", Money.of("42.42"))
        assert outstanding(db) != before

        deleted = recorder.delete(settlement.id)

        assert deleted.id == settlement.id
        assert outstanding(db) == before
        assert invalidations == [TRIP, TRIP]

    def test_unknown_settlement(self, recorder, invalidations):
        with pytest.raises(SettlementNotFoundError) as exc_info:
            recorder.delete("missing")

        assert exc_info.value.settlement_id == "missing"
        assert invalidations == []


class TestTripCurrency:
    """Settlements must be in the trip's working currency."""

    def test_foreign_currency_rejected_on_empty_trip(self, tmp_path, invalidations):
        """Without any expense to trip over, the currency is still checked."""
        with Database(tmp_path / "empty.db") as database:
            database.add_member("empty", Member(user_id="a"))
            database.add_member("empty", Member(user_id="b"))
            recorder = SettlementRecorder(database, listeners=[invalidations.append])

            with pytest.raises(CurrencyMismatchError):
                recorder.record("empty", "b", "a", Money.of("5.00", "USD"))

            assert database.list_settlements("empty") == []
            assert invalidations == []

    def test_recorder_currency(self, db):
        recorder = SettlementRecorder(db, currency="USD")

        with pytest.raises(CurrencyMismatchError):
            recorder.record(TRIP, "b", "a", Money.of("5.00"))

    def test_overpayment_within_epsilon_not_flagged(self, recorder, caplog):
        """One cent above the debt is rounding, not an overpayment."""
        recorder.record(TRIP, "b", "a", Money.of("100.01"))

        assert "overpayment" not in caplog.text

    def test_overpayment_threshold_follows_epsilon(self, db, caplog):
        recorder = SettlementRecorder(db, epsilon_units=0)

        recorder.record(TRIP, "b", "a", Money.of("100.01"))

        assert "overpayment" in caplog.text
