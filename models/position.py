"""
Position model - the stored summary of an asset's transaction log.
"""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Position(SQLModel, table=True):
    """
    Current position for one asset.
    Always written as a full overwrite of a replay of the asset's transactions.
    """
    asset_id: int = Field(foreign_key="asset.id", primary_key=True)
    current_quantity: float = 0.0
    average_purchase_price: float = 0.0
    realized_profit_loss: float = 0.0
    is_closed: bool = True

    # Informational accumulators
    total_invested: float = 0.0
    total_sold_quantity: float = 0.0
    total_sold_value: float = 0.0
    cost_basis: float = 0.0  # Cost of the open lots
    transaction_count: int = 0

    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
