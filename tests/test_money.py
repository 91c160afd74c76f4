"""Tests for the fixed-point Money type."""

from decimal import Decimal
from fractions import Fraction

import pytest
from pydantic import ValidationError

from trip_ledger.exceptions import CurrencyMismatchError
from trip_ledger.money import Money, round_half_up


class TestConstruction:
    """Building Money from major-unit values."""

    def test_from_string(self):
        """A decimal string maps to exact cents."""
        assert Money.of("10.01").minor_units == 1001

    def test_from_decimal_and_int(self):
        """Decimal and int inputs are major units."""
        assert Money.of(Decimal("300.00")).minor_units == 30000
        assert Money.of(300).minor_units == 30000

    def test_rounds_half_up(self):
        """Sub-cent precision is rounded half-up, away from zero."""
        assert Money.of("0.005").minor_units == 1
        assert Money.of("0.004").minor_units == 0
        assert Money.of("-0.005").minor_units == -1

    def test_float_rejected(self):
        """Floats never enter the ledger."""
        with pytest.raises(TypeError):
            Money.of(10.01)  # type: ignore[arg-type]

    def test_float_minor_units_rejected(self):
        """The raw constructor is strict about integers."""
        with pytest.raises(ValidationError):
            Money(minor_units=10.5, currency="EUR")  # type: ignore[arg-type]

    def test_garbage_rejected(self):
        """Non-numeric strings raise ValueError."""
        with pytest.raises(ValueError, match="Invalid monetary amount"):
            Money.of("ten euros")
        with pytest.raises(ValueError):
            Money.of("NaN")

    def test_currency_normalized(self):
        """Currency codes are upper-cased and validated."""
        assert Money.of("1", "usd").currency == "USD"
        with pytest.raises(ValidationError):
            Money.of("1", "euro")

    def test_zero_decimal_currency(self):
        """Yen has no minor unit."""
        money = Money.of("1500", "JPY")
        assert money.minor_units == 1500
        assert money.to_decimal() == Decimal("1500")


class TestArithmetic:
    """Addition, subtraction, comparison."""

    def test_add_and_subtract(self):
        total = Money.of("10.01") + Money.of("0.99")
        assert total == Money.of("11.00")
        assert total - Money.of("1.00") == Money.of("10.00")

    def test_negate_and_abs(self):
        assert -Money.of("5.00") == Money.of("-5.00")
        assert abs(Money.of("-5.00")) == Money.of("5.00")

    def test_sum_from_zero(self):
        """sum() works without an explicit start value."""
        assert sum([Money.of("1.10"), Money.of("2.20")]) == Money.of("3.30")

    def test_comparison(self):
        assert Money.of("1.00") < Money.of("1.01")
        assert Money.of("2.00") >= Money.of("2.00")
        assert Money.of("-1") < Money.zero()

    def test_currency_mismatch_on_add(self):
        """Combining currencies fails loudly."""
        with pytest.raises(CurrencyMismatchError) as exc_info:
            Money.of("1", "EUR") + Money.of("1", "USD")
        assert exc_info.value.left == "EUR"
        assert exc_info.value.right == "USD"

    def test_currency_mismatch_on_compare(self):
        with pytest.raises(CurrencyMismatchError):
            _ = Money.of("1", "EUR") < Money.of("2", "USD")

    def test_immutable(self):
        """Money values cannot be changed in place."""
        money = Money.of("1.00")
        with pytest.raises(ValidationError):
            money.minor_units = 5  # type: ignore[misc]


class TestMultiply:
    """Multiplication by rational factors."""

    def test_exact(self):
        assert Money.of("10.00").multiply(Fraction(1, 4)) == Money.of("2.50")

    def test_rounds_half_up(self):
        """0.05 * 1/2 = 0.025 rounds to 0.03."""
        assert Money.of("0.05").multiply(Fraction(1, 2)) == Money.of("0.03")
        assert Money.of("-0.05").multiply(Fraction(1, 2)) == Money.of("-0.03")

    def test_float_factor_rejected(self):
        with pytest.raises(TypeError):
            Money.of("1").multiply(0.5)  # type: ignore[arg-type]

    def test_round_half_up_helper(self):
        assert round_half_up(1001, 3) == 334
        assert round_half_up(1000, 3) == 333
        assert round_half_up(-5, 2) == -3
        with pytest.raises(ValueError):
            round_half_up(1, 0)


class TestAllocation:
    """Splitting an amount without losing or creating a cent."""

    def test_ten_euros_three_ways(self):
        """10.00 / 3 -> one share of 3.34 and two of 3.33."""
        shares = Money.of("10.00").split_evenly(3)
        assert [s.minor_units for s in shares] == [334, 333, 333]
        assert sum(shares) == Money.of("10.00")

    def test_ten_oh_one_three_ways(self):
        """10.01 / 3 -> two shares of 3.34 and one of 3.33."""
        shares = Money.of("10.01").split_evenly(3)
        assert sorted(s.minor_units for s in shares) == [333, 334, 334]
        assert sum(shares) == Money.of("10.01")

    def test_even_split(self):
        shares = Money.of("300.00").split_evenly(3)
        assert shares == [Money.of("100.00")] * 3

    def test_weighted(self):
        """Weights 2:1 on 1.00 -> 0.67 / 0.33."""
        shares = Money.of("1.00").allocate([2, 1])
        assert [s.minor_units for s in shares] == [67, 33]

    def test_unequal_weights_never_go_negative(self):
        """Rounding-up residue is taken back from shares that rounded up."""
        shares = Money.of("0.02").allocate([1, 3, 3, 3])

        assert [s.minor_units for s in shares] == [0, 0, 1, 1]
        assert sum(shares) == Money.of("0.02")

    @pytest.mark.parametrize(
        "weights", [[1, 3, 3, 3], [1, 1, 5], [2, 7, 7, 7, 7], [1, 100, 100]]
    )
    def test_weighted_shares_stay_close(self, weights):
        """Every share is within one unit of its exact proportion."""
        total = Money.of("0.07")
        shares = total.allocate(weights)

        assert sum(shares) == total
        for share, weight in zip(shares, weights, strict=True):
            exact = Fraction(total.minor_units * weight, sum(weights))
            assert share.minor_units >= 0
            assert abs(share.minor_units - exact) < 1

    def test_zero_weight_gets_nothing(self):
        """Residual units are never handed to zero-weight shares."""
        shares = Money.of("0.10").allocate([0, 1, 1, 1])
        assert shares[0].is_zero()
        assert sum(shares) == Money.of("0.10")

    def test_negative_amount(self):
        shares = Money.of("-10.00").split_evenly(3)
        assert sum(shares) == Money.of("-10.00")

    @pytest.mark.parametrize("amount", ["0.01", "0.02", "99.99", "1234.57"])
    @pytest.mark.parametrize("parts", [1, 2, 3, 7])
    def test_sum_conserved(self, amount, parts):
        """Shares always add back up to the original amount."""
        total = Money.of(amount)
        assert sum(total.split_evenly(parts)) == total

    def test_invalid_weights(self):
        with pytest.raises(ValueError):
            Money.of("1").allocate([])
        with pytest.raises(ValueError):
            Money.of("1").allocate([0, 0])
        with pytest.raises(ValueError):
            Money.of("1").allocate([1, -1])
        with pytest.raises(ValueError):
            Money.of("1").split_evenly(0)


class TestDisplay:
    """String rendering."""

    def test_str(self):
        assert str(Money.of("10.01")) == "10.01 EUR"
        assert str(Money.zero("USD")) == "0.00 USD"

    def test_format(self):
        assert Money.of("1234.5").format() == "€1,234.50"
        assert Money.of("-3", "USD").format() == "-$3.00"
        assert Money.of("7", "CHF").format() == "7.00 CHF"
