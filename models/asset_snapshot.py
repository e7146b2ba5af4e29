"""
AssetSnapshot model - periodic (typically monthly) valuation of a holding.
"""

from typing import Optional
from datetime import date, datetime, timezone
from sqlalchemy import UniqueConstraint
from sqlmodel import SQLModel, Field


class AssetSnapshot(SQLModel, table=True):
    """
    Frozen valuation of one asset on a date.
    Feeds month-over-month profitability without re-pricing history.
    """
    __table_args__ = (UniqueConstraint("asset_id", "snapshot_date"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: int = Field(foreign_key="asset.id", index=True)
    snapshot_date: date = Field(index=True)

    unit_price: float  # In the asset's own currency
    quantity: float
    total_value: float  # quantity * unit_price converted to base_currency
    base_currency: str = Field(default="BRL")
    exchange_rate: Optional[float] = Field(default=None)  # Only set for foreign-currency assets

    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
