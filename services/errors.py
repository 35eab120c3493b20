"""Error taxonomy for the transaction domain."""
from typing import Dict, List


class TransactionError(Exception):
    """Base class for every error raised by the transaction service."""


class ValidationError(TransactionError):
    """The client payload violates one or more field rules."""

    def __init__(self, violations: List[Dict[str, str]]):
        self.violations = violations
        fields = ", ".join(v["field"] for v in violations)
        super().__init__(f"Invalid transaction payload: {fields}")


class InvalidIdentifier(TransactionError):
    def __init__(self, raw_id: str):
        self.raw_id = raw_id
        super().__init__(f"Invalid transaction id: {raw_id!r}")


class Unauthenticated(TransactionError):
    pass


class NotFound(TransactionError):
    """No record matches both the id and the owner."""

    def __init__(self, transaction_id: str):
        self.transaction_id = transaction_id
        super().__init__("Transaction not found")


class StorageError(TransactionError):
    """Backend failure. The message is logged, never returned to the caller."""
