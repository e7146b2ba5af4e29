"""
Database models for the position ledger.
All SQLModel table definitions are centralized here.
"""

from models.asset import Asset
from models.transaction import Transaction
from models.position import Position
from models.asset_price import AssetPrice
from models.asset_snapshot import AssetSnapshot

__all__ = [
    'Asset',
    'Transaction',
    'Position',
    'AssetPrice',
    'AssetSnapshot',
]
