"""
Repositories package for the position ledger.
Provides data access layer for all database operations.
"""

from repositories.asset_repository import AssetRepository
from repositories.transaction_repository import TransactionRepository
from repositories.position_repository import PositionRepository
from repositories.price_repository import PriceRepository
from repositories.snapshot_repository import SnapshotRepository

__all__ = [
    'AssetRepository',
    'TransactionRepository',
    'PositionRepository',
    'PriceRepository',
    'SnapshotRepository',
]
