"""
Asset model - represents an investment held by the user.
"""

from typing import Optional
from datetime import date, datetime, timezone
from sqlmodel import SQLModel, Field


class Asset(SQLModel, table=True):
    """Represents an investment (stock, fund, bond, crypto) being tracked."""
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str = Field(index=True)  # e.g., "Tesouro IPCA 2035", "PETR4"
    symbol: Optional[str] = Field(default=None, index=True)  # Quote symbol, if listed
    investment_type: str = Field(default="Outros")  # e.g., "Ações", "FII", "Renda Fixa"
    broker: str = Field(default="Outras")
    currency: str = Field(default="BRL")  # "BRL" or "USD"
    current_price: Optional[float] = Field(default=None)  # Latest known unit price
    price_date: Optional[date] = Field(default=None)  # Date of current_price
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
