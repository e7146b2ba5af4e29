"""
AssetPrice model - daily unit price history for an asset.
"""

from typing import Optional
from datetime import date, datetime, timezone
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class AssetPrice(SQLModel, table=True):
    """One recorded unit price per asset per day."""
    __table_args__ = (UniqueConstraint("asset_id", "price_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: int = Field(foreign_key="asset.id", index=True)
    price_date: date = Field(index=True)
    price: float
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
