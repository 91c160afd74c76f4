"""Custom exceptions for Trip Ledger."""

from decimal import Decimal


class TripLedgerError(Exception):
    """Base exception for all Trip Ledger errors."""

    pass


class ConfigurationError(TripLedgerError):
    """Raised when configuration is invalid or missing."""

    pass


class CurrencyMismatchError(TripLedgerError):
    """Raised when money in different currencies is combined."""

    def __init__(self, left: str, right: str, message: str | None = None):
        self.left = left
        self.right = right
        super().__init__(
            message or f"Cannot combine amounts in {left} and {right}"
        )


class UnbalancedLedgerError(TripLedgerError):
    """Raised when balances do not sum to zero and cannot be fully settled."""

    def __init__(self, residual: Decimal, currency: str, message: str | None = None):
        self.residual = residual
        self.currency = currency
        super().__init__(
            message
            or f"Ledger is unbalanced by {residual} {currency}; "
            f"expense splits or settlements are inconsistent"
        )


class InvalidSettlementError(TripLedgerError):
    """Raised when a settlement fails validation before being persisted."""

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid settlement: {reason}")


class InvalidExpenseError(TripLedgerError):
    """Raised when an expense or its splits cannot be built."""

    pass


class SettlementNotFoundError(TripLedgerError):
    """Raised when a settlement id does not exist in the row store."""

    def __init__(self, settlement_id: str):
        self.settlement_id = settlement_id
        super().__init__(f"Settlement {settlement_id} not found")


class RowStoreError(TripLedgerError):
    """Raised when the row store fails to read or write."""

    pass


class ExpenseNotFoundError(TripLedgerError):
    """Raised when an expense id does not exist in the row store."""

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense {expense_id} not found")
