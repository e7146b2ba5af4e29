"""
Error taxonomy for the position ledger.

Validation and oversell errors are permanent: the write is rejected and
nothing is persisted. RecomputeFailure is transient: the position can always
be rebuilt from the transaction log, so callers may retry.
"""

from typing import Optional


class LedgerError(Exception):
    """Base class for all ledger errors."""

    retryable = False


class ValidationError(LedgerError):
    """A transaction violates its field constraints or belongs to another asset."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field


class OversellError(LedgerError):
    """A SELL (or a deleted BUY) would leave units sold beyond the open lots."""

    def __init__(self, asset_id: int, unmatched_quantity: float):
        super().__init__(
            f"Asset {asset_id}: sells exceed open lots by {unmatched_quantity:g} units"
        )
        self.asset_id = asset_id
        self.unmatched_quantity = unmatched_quantity


class RecomputeFailure(LedgerError):
    """The mutate-and-recompute unit of work could not be completed."""

    retryable = True

    def __init__(self, asset_id: int, cause: Optional[BaseException] = None):
        super().__init__(f"Could not recompute position for asset {asset_id}: {cause}")
        self.asset_id = asset_id
        self.cause = cause


class AssetNotFoundError(LedgerError):
    """The referenced asset does not exist."""

    def __init__(self, asset_id: int):
        super().__init__(f"Asset {asset_id} not found")
        self.asset_id = asset_id


class TransactionNotFoundError(LedgerError):
    """The referenced transaction does not exist."""

    def __init__(self, transaction_id: int):
        super().__init__(f"Transaction {transaction_id} not found")
        self.transaction_id = transaction_id
