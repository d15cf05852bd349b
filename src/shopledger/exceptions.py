"""
Error types raised by the ledger engine.

Only ledger appends raise. Everything else in the engine recovers locally
with a default value and reports a diagnostic instead.
"""


class LedgerError(Exception):
    """Base class for ledger errors."""


class DuplicateTransactionIdError(LedgerError):
    """An inventory transaction with the same id is already in the ledger."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__(
            f"Inventory transaction '{transaction_id}' already exists in the ledger; "
            "corrections must be appended as new transactions"
        )


class InvalidTransactionError(LedgerError, ValueError):
    """An inventory transaction is missing data the ledger needs."""

    def __init__(self, field: str, message: str):
        self.field = field
        super().__init__(f"{field}: {message}")
