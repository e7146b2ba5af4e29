"""
Services package for the position ledger.
Provides core business logic separated from presentation and data layers.
"""

from services.errors import (
    LedgerError,
    ValidationError,
    OversellError,
    RecomputeFailure,
    AssetNotFoundError,
    TransactionNotFoundError,
)
from services.ledger import (
    TransactionType,
    Lot,
    PositionSummary,
    recompute_position,
    sort_transactions,
    validate_transaction,
)
from services.transactions import LedgerService, LedgerUpdate
from services.assets import AssetService
from services.market_data import MarketDataService
from services.portfolio import PortfolioService

__all__ = [
    # Errors
    'LedgerError',
    'ValidationError',
    'OversellError',
    'RecomputeFailure',
    'AssetNotFoundError',
    'TransactionNotFoundError',
    # Ledger engine
    'TransactionType',
    'Lot',
    'PositionSummary',
    'recompute_position',
    'sort_transactions',
    'validate_transaction',
    # Services
    'LedgerService',
    'LedgerUpdate',
    'AssetService',
    'MarketDataService',
    'PortfolioService',
]
