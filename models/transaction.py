"""
Transaction model - represents a buy/sell transaction for an asset.
"""

from typing import Optional
from datetime import date, datetime, timezone
from sqlmodel import SQLModel, Field


class Transaction(SQLModel, table=True):
    """
    Represents a buy/sell transaction for an asset.
    Rows are never edited in place; a correction is a delete plus a new row.
    """
    id: Optional[int] = Field(default=None, primary_key=True)
    asset_id: int = Field(foreign_key="asset.id", index=True)
    transaction_date: date = Field(index=True)
    transaction_type: str  # "BUY" or "SELL"
    quantity: float
    unit_price: float  # Price per unit at transaction time
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
