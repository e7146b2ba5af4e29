"""
Portfolio service for valuing stored positions.
Reads the Position summaries written by the ledger; never recomputes cost
basis itself. Handles BRL/USD portfolios with conversion to a base currency.
"""

import logging
from datetime import date
from typing import Dict, List, Optional

import pandas as pd
from sqlmodel import Session

from config import get_settings
from db_engine import get_engine
from models import AssetSnapshot
from repositories.asset_repository import AssetRepository
from repositories.position_repository import PositionRepository
from repositories.price_repository import PriceRepository
from repositories.snapshot_repository import SnapshotRepository
from services.errors import AssetNotFoundError, ValidationError
from services.market_data import MarketDataService
from services.transactions import LedgerService

logger = logging.getLogger(__name__)


GROUP_FIELDS = ("investment_type", "broker", "currency")


class PortfolioService:
    """
    Service for prices, holdings valuation and portfolio breakdowns.
    """

    @staticmethod
    def _get_currency_rate(from_currency: str, to_currency: str) -> float:
        """
        Get exchange rate between two currencies.
        Falls back to the configured USD/BRL rate, then to 1.0.
        """
        if from_currency == to_currency:
            return 1.0

        rate = MarketDataService.get_exchange_rate(from_currency, to_currency)
        if rate:
            return rate

        fallback = get_settings().default_usd_brl_rate
        if (from_currency, to_currency) == ("USD", "BRL"):
            return fallback
        if (from_currency, to_currency) == ("BRL", "USD"):
            return 1.0 / fallback

        logger.warning(f"No exchange rate for {from_currency}->{to_currency}; using 1.0")
        return 1.0

    @staticmethod
    def record_price(asset_id: int, price: float, price_date: date):
        """
        Store a unit price for an asset and date.
        A price dated on or after the asset's current price date becomes its
        current price.

        Raises:
            ValidationError: Non-positive price
            AssetNotFoundError: Unknown asset
        """
        if isinstance(price, bool) or not isinstance(price, (int, float)) or not price > 0:
            raise ValidationError(f"Price must be a positive number, got {price!r}", field="price")

        asset = AssetRepository.get_by_id(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)

        with Session(get_engine()) as session:
            try:
                record = PriceRepository.upsert(asset_id, price_date, float(price), session=session, commit=False)
                is_current = asset.price_date is None or price_date >= asset.price_date
                if is_current:
                    AssetRepository.update_price(asset_id, float(price), price_date, session=session, commit=False)
                session.commit()
                session.refresh(record)
            except Exception:
                session.rollback()
                raise

        if is_current:
            logger.info(f"Asset {asset_id} current price set to {price} ({price_date})")
        return record

    @staticmethod
    def refresh_quotes(price_date: Optional[date] = None) -> int:
        """
        Fetch current quotes for every asset with a symbol and record them.

        Returns:
            Number of assets updated
        """
        price_date = price_date or date.today()
        updated = 0
        for asset in AssetRepository.get_all():
            if not asset.symbol:
                continue
            price = MarketDataService.get_current_price(asset.symbol, asset.currency)
            if price is None:
                logger.warning(f"Skipping {asset.name}: no quote for {asset.symbol}")
                continue
            PortfolioService.record_price(asset.id, price, price_date)
            updated += 1
        return updated

    @staticmethod
    def get_asset_holding(asset_id: int, base_currency: Optional[str] = None) -> Optional[Dict]:
        """
        Value one asset's stored position.

        Args:
            asset_id: Asset ID
            base_currency: Currency for the *_base values (default: settings)

        Returns:
            Dictionary with quantity, cost, market value and PnL, or None if
            the asset does not exist
        """
        asset = AssetRepository.get_by_id(asset_id)
        if asset is None:
            return None
        position = LedgerService.get_position(asset_id)
        return PortfolioService._value(asset, position, base_currency or get_settings().base_currency)

    @staticmethod
    def _value(asset, position, base_currency: str) -> Dict:
        quantity = position.current_quantity
        avg_cost = position.average_purchase_price
        # Without a quote the position is carried at cost
        current_price = asset.current_price if asset.current_price is not None else avg_cost

        cost_basis = position.cost_basis
        market_value = quantity * current_price
        unrealized_pnl = market_value - cost_basis if quantity > 0 else 0.0
        unrealized_pnl_pct = (unrealized_pnl / cost_basis * 100) if cost_basis > 0 else 0.0

        exchange_rate = PortfolioService._get_currency_rate(asset.currency, base_currency)

        return {
            'asset_id': asset.id,
            'name': asset.name,
            'symbol': asset.symbol,
            'investment_type': asset.investment_type,
            'broker': asset.broker,
            'currency': asset.currency,
            'quantity': round(quantity, 6),
            'avg_cost': round(avg_cost, 4),
            'current_price': round(current_price, 4),
            'price_date': asset.price_date,
            'cost_basis': round(cost_basis, 2),
            'market_value': round(market_value, 2),
            'unrealized_pnl': round(unrealized_pnl, 2),
            'unrealized_pnl_pct': round(unrealized_pnl_pct, 2),
            'realized_pnl': round(position.realized_profit_loss, 2),
            'is_closed': position.is_closed,
            'exchange_rate': round(exchange_rate, 4) if exchange_rate != 1.0 else None,
            'cost_basis_base': round(cost_basis * exchange_rate, 2),
            'market_value_base': round(market_value * exchange_rate, 2),
            'unrealized_pnl_base': round(unrealized_pnl * exchange_rate, 2),
            'realized_pnl_base': round(position.realized_profit_loss * exchange_rate, 2),
        }

    @staticmethod
    def get_holdings(
        base_currency: Optional[str] = None,
        include_closed: bool = False,
        investment_types: Optional[List[str]] = None,
        brokers: Optional[List[str]] = None
    ) -> List[Dict]:
        """
        Value every asset, optionally filtered by type and broker.
        Closed positions are left out unless include_closed is set.
        """
        base_currency = base_currency or get_settings().base_currency
        positions = {p.asset_id: p for p in PositionRepository.get_all()}

        holdings = []
        for asset in AssetRepository.get_all():
            if investment_types and asset.investment_type not in investment_types:
                continue
            if brokers and asset.broker not in brokers:
                continue

            position = positions.get(asset.id) or LedgerService.get_position(asset.id)
            if position.is_closed and not include_closed:
                continue
            holdings.append(PortfolioService._value(asset, position, base_currency))
        return holdings

    @staticmethod
    def calculate_totals(base_currency: Optional[str] = None, **filters) -> Dict:
        """
        Summarize the portfolio in the base currency.

        Returns:
            Dictionary with invested amount, current value, unrealized and
            realized PnL and the number of open positions
        """
        base_currency = base_currency or get_settings().base_currency
        holdings = PortfolioService.get_holdings(base_currency, include_closed=True, **filters)

        total_invested = sum(h['cost_basis_base'] for h in holdings if not h['is_closed'])
        total_value = sum(h['market_value_base'] for h in holdings if not h['is_closed'])
        realized = sum(h['realized_pnl_base'] for h in holdings)
        absolute = total_value - total_invested
        pct = (absolute / total_invested * 100) if total_invested > 0 else 0.0

        return {
            'base_currency': base_currency,
            'total_invested': round(total_invested, 2),
            'total_value': round(total_value, 2),
            'unrealized_pnl': round(absolute, 2),
            'unrealized_pnl_pct': round(pct, 2),
            'realized_pnl': round(realized, 2),
            'open_positions': sum(1 for h in holdings if not h['is_closed']),
        }

    @staticmethod
    def group_by(field: str, base_currency: Optional[str] = None) -> Dict[str, float]:
        """
        Current value of open positions grouped by investment_type, broker or currency.

        Returns:
            Mapping of group label to value in the base currency, largest first
        """
        if field not in GROUP_FIELDS:
            raise ValidationError(f"Cannot group by {field!r}; expected one of {GROUP_FIELDS}", field="field")

        holdings = PortfolioService.get_holdings(base_currency)
        if not holdings:
            return {}

        df = pd.DataFrame(holdings)
        df[field] = df[field].fillna("").replace("", "Outros")
        grouped = df.groupby(field)['market_value_base'].sum().sort_values(ascending=False)
        return {str(label): round(float(value), 2) for label, value in grouped.items()}

    @staticmethod
    def create_snapshot(
        asset_id: int,
        snapshot_date: Optional[date] = None,
        base_currency: Optional[str] = None
    ) -> AssetSnapshot:
        """
        Freeze an asset's current valuation on a date.
        Taking a second snapshot for the same asset and date replaces the first.

        Args:
            asset_id: Asset ID
            snapshot_date: Valuation date (default: today)
            base_currency: Currency of total_value (default: settings)

        Raises:
            AssetNotFoundError: Unknown asset
        """
        asset = AssetRepository.get_by_id(asset_id)
        if asset is None:
            raise AssetNotFoundError(asset_id)
        position = LedgerService.get_position(asset_id)
        return PortfolioService._snapshot(
            asset, position, snapshot_date or date.today(), base_currency or get_settings().base_currency
        )

    @staticmethod
    def create_batch_snapshots(
        snapshot_date: Optional[date] = None,
        base_currency: Optional[str] = None,
        include_closed: bool = False
    ) -> List[AssetSnapshot]:
        """
        Snapshot every asset on the same date, usually at month end.
        Closed positions are skipped unless include_closed is set.
        """
        snapshot_date = snapshot_date or date.today()
        base_currency = base_currency or get_settings().base_currency
        positions = {p.asset_id: p for p in PositionRepository.get_all()}

        snapshots = []
        for asset in AssetRepository.get_all():
            position = positions.get(asset.id) or LedgerService.get_position(asset.id)
            if position.is_closed and not include_closed:
                continue
            snapshots.append(PortfolioService._snapshot(asset, position, snapshot_date, base_currency))

        logger.info(f"Created {len(snapshots)} snapshots for {snapshot_date}")
        return snapshots

    @staticmethod
    def _snapshot(asset, position, snapshot_date: date, base_currency: str) -> AssetSnapshot:
        # Without a quote the position is carried at cost
        unit_price = asset.current_price if asset.current_price is not None else position.average_purchase_price
        rate = PortfolioService._get_currency_rate(asset.currency, base_currency)

        return SnapshotRepository.save(AssetSnapshot(
            asset_id=asset.id,
            snapshot_date=snapshot_date,
            unit_price=unit_price,
            quantity=position.current_quantity,
            total_value=round(position.current_quantity * unit_price * rate, 2),
            base_currency=base_currency,
            exchange_rate=rate if asset.currency != base_currency else None,
        ))

    @staticmethod
    def get_snapshots(
        asset_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None
    ) -> List[AssetSnapshot]:
        """Stored snapshots, newest first."""
        return SnapshotRepository.get_history(asset_id, start_date, end_date)

    @staticmethod
    def snapshot_totals(start_date: Optional[date] = None, end_date: Optional[date] = None) -> List[Dict]:
        """
        Portfolio value per snapshot date with the change from the previous date.

        Returns:
            Oldest first: snapshot_date, total_value, change, change_pct
        """
        snapshots = SnapshotRepository.get_history(start_date=start_date, end_date=end_date)
        if not snapshots:
            return []

        df = pd.DataFrame([{'snapshot_date': s.snapshot_date, 'total_value': s.total_value} for s in snapshots])
        totals = df.groupby('snapshot_date')['total_value'].sum().sort_index()
        change = totals.diff().fillna(0.0)
        previous = totals.shift(1)
        change_pct = (change / previous * 100).where(previous > 0, 0.0)

        return [
            {
                'snapshot_date': snapshot_date,
                'total_value': round(float(total), 2),
                'change': round(float(delta), 2),
                'change_pct': round(float(pct), 2),
            }
            for snapshot_date, total, delta, pct in zip(totals.index, totals, change, change_pct)
        ]
