"""Fixed-point money type backed by integer minor units.

Every amount in the ledger is a ``Money`` value. Floats are rejected on the
way in so that balances computed from expenses, splits and settlements are
exact and always sum to zero.
"""

from collections.abc import Sequence
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from fractions import Fraction

from pydantic import BaseModel, ConfigDict, StrictInt, field_validator

from .exceptions import CurrencyMismatchError

DEFAULT_CURRENCY = "EUR"

# ISO 4217 currencies without a minor unit
ZERO_DECIMAL_CURRENCIES = frozenset({"JPY", "KRW", "VND", "CLP", "ISK"})

CURRENCY_SYMBOLS = {"EUR": "€", "USD": "$", "GBP": "£", "JPY": "¥"}


def minor_unit_exponent(currency: str) -> int:
    """Number of decimal places used by a currency's minor unit."""
    return 0 if currency.upper() in ZERO_DECIMAL_CURRENCIES else 2


def round_half_up(numerator: int, denominator: int) -> int:
    """
    Integer division rounding half away from zero.

    Example:
        round_half_up(1001, 3) == 334
        round_half_up(-5, 2) == -3
    """
    if denominator <= 0:
        raise ValueError("Denominator must be positive")
    sign = -1 if numerator < 0 else 1
    quotient, remainder = divmod(abs(numerator), denominator)
    if remainder * 2 >= denominator:
        quotient += 1
    return sign * quotient


class Money(BaseModel):
    """An exact monetary amount in a single currency."""

    model_config = ConfigDict(frozen=True)

    minor_units: StrictInt  # cents for EUR/USD, yen for JPY
    currency: str = DEFAULT_CURRENCY

    @field_validator("currency")
    @classmethod
    def normalize_currency(cls, value: str) -> str:
        """Upper-case and validate a three-letter currency code."""
        code = value.strip().upper()
        if len(code) != 3 or not code.isalpha():
            raise ValueError(f"Invalid currency code: {value!r}")
        return code

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def of(cls, value: int | str | Decimal, currency: str = DEFAULT_CURRENCY) -> "Money":
        """
        Build Money from a major-unit value ("10.01", Decimal("10.01"), 10).

        Values with more precision than the currency's minor unit are rounded
        half-up.

        Raises:
            TypeError: If value is a float (or bool)
            ValueError: If value is not a finite number
        """
        if isinstance(value, float | bool):
            raise TypeError(
                f"Monetary amounts must be Decimal, str or int, not {type(value).__name__}"
            )
        try:
            amount = value if isinstance(value, Decimal) else Decimal(value)
        except InvalidOperation as e:
            raise ValueError(f"Invalid monetary amount: {value!r}") from e
        if not amount.is_finite():
            raise ValueError(f"Invalid monetary amount: {value!r}")

        exponent = minor_unit_exponent(currency)
        minor = amount.scaleb(exponent).quantize(Decimal("1"), rounding=ROUND_HALF_UP)
        return cls(minor_units=int(minor), currency=currency)

    @classmethod
    def zero(cls, currency: str = DEFAULT_CURRENCY) -> "Money":
        """Zero in the given currency."""
        return cls(minor_units=0, currency=currency)

    # ------------------------------------------------------------------
    # Arithmetic
    # ------------------------------------------------------------------

    def _require_same_currency(self, other: "Money") -> None:
        if self.currency != other.currency:
            raise CurrencyMismatchError(self.currency, other.currency)

    def __add__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return Money(
            minor_units=self.minor_units + other.minor_units, currency=self.currency
        )

    def __radd__(self, other: object) -> "Money":
        # Lets sum() start from the int 0
        if other == 0:
            return self
        return NotImplemented

    def __sub__(self, other: object) -> "Money":
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return Money(
            minor_units=self.minor_units - other.minor_units, currency=self.currency
        )

    def __neg__(self) -> "Money":
        return Money(minor_units=-self.minor_units, currency=self.currency)

    def __abs__(self) -> "Money":
        return Money(minor_units=abs(self.minor_units), currency=self.currency)

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units < other.minor_units

    def __le__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units <= other.minor_units

    def __gt__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units > other.minor_units

    def __ge__(self, other: object) -> bool:
        if not isinstance(other, Money):
            return NotImplemented
        self._require_same_currency(other)
        return self.minor_units >= other.minor_units

    def is_zero(self) -> bool:
        return self.minor_units == 0

    def is_positive(self) -> bool:
        return self.minor_units > 0

    def is_negative(self) -> bool:
        return self.minor_units < 0

    def multiply(self, factor: Fraction | int) -> "Money":
        """
        Multiply by a rational factor, rounding half-up to the minor unit.

        Args:
            factor: A Fraction or int (floats are rejected)

        Returns:
            New Money with the rounded product
        """
        if isinstance(factor, float):
            raise TypeError("Multiply by a Fraction or int, not float")
        ratio = Fraction(factor)
        return Money(
            minor_units=round_half_up(
                self.minor_units * ratio.numerator, ratio.denominator
            ),
            currency=self.currency,
        )

    def allocate(self, weights: Sequence[Fraction | int]) -> list["Money"]:
        """
        Split this amount proportionally to weights without losing a unit.

        Each share is rounded half-up. The residual left over by rounding is
        then corrected one minor unit at a time on the shares that rounding
        pushed furthest the wrong way (zero weights never take part). Ties go
        to the leading shares, so the caller's ordering decides who absorbs
        the residual of an even split.

        Example:
            Money.of("10.00").allocate([1, 1, 1]) -> 3.34, 3.33, 3.33
            Money.of("10.01").allocate([1, 1, 1]) -> 3.33, 3.34, 3.34
            Money.of("0.02").allocate([1, 3, 3, 3]) -> 0.00, 0.00, 0.01, 0.01

        Raises:
            ValueError: If weights are empty, negative, or all zero
        """
        if not weights:
            raise ValueError("Cannot allocate across an empty list of weights")
        ratios = [Fraction(weight) for weight in weights]
        if any(ratio < 0 for ratio in ratios):
            raise ValueError("Allocation weights must not be negative")
        total = sum(ratios, Fraction(0))
        if total == 0:
            raise ValueError("Allocation weights must not all be zero")

        exact = [self.minor_units * ratio / total for ratio in ratios]
        shares = [round_half_up(value.numerator, value.denominator) for value in exact]

        residual = self.minor_units - sum(shares)
        if residual:
            step = 1 if residual > 0 else -1
            eligible = [idx for idx, ratio in enumerate(ratios) if ratio > 0]
            # Largest rounding error against the direction of the residual first
            eligible.sort(key=lambda idx: (-(exact[idx] - shares[idx]) * step, idx))
            for idx in eligible[: abs(residual)]:
                shares[idx] += step

        return [Money(minor_units=share, currency=self.currency) for share in shares]

    def split_evenly(self, parts: int) -> list["Money"]:
        """Split into equal shares; see allocate() for residual handling."""
        if parts <= 0:
            raise ValueError("Number of parts must be positive")
        return self.allocate([1] * parts)

    # ------------------------------------------------------------------
    # Display
    # ------------------------------------------------------------------

    def to_decimal(self) -> Decimal:
        """Major-unit Decimal with the currency's number of places."""
        exponent = minor_unit_exponent(self.currency)
        return (
            Decimal(self.minor_units)
            .scaleb(-exponent)
            .quantize(Decimal(1).scaleb(-exponent))
        )

    def format(self) -> str:
        """Human-readable amount, e.g. "€1,234.50" or "-$3.00"."""
        symbol = CURRENCY_SYMBOLS.get(self.currency)
        places = minor_unit_exponent(self.currency)
        digits = f"{abs(self.to_decimal()):,.{places}f}"
        sign = "-" if self.is_negative() else ""
        if symbol:
            return f"{sign}{symbol}{digits}"
        return f"{sign}{digits} {self.currency}"

    def __str__(self) -> str:
        return f"{self.to_decimal()} {self.currency}"
