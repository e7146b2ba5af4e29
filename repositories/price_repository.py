"""
Price Repository - data access layer for AssetPrice history.
"""

from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from db_engine import get_engine
from models import AssetPrice


class PriceRepository:
    """Repository for AssetPrice operations."""

    @staticmethod
    def upsert(
        asset_id: int,
        price_date: date,
        price: float,
        session: Optional[Session] = None,
        commit: bool = True
    ) -> AssetPrice:
        """
        Save a price for an asset and date.
        Uses upsert logic: if one exists for asset_id + date, update; otherwise insert.
        """
        def _upsert(sess: Session) -> AssetPrice:
            statement = select(AssetPrice).where(
                AssetPrice.asset_id == asset_id,
                AssetPrice.price_date == price_date
            )
            record = sess.exec(statement).first()

            if record:
                record.price = price
            else:
                record = AssetPrice(asset_id=asset_id, price_date=price_date, price=price)
            sess.add(record)
            if commit:
                sess.commit()
                sess.refresh(record)
            else:
                sess.flush()
            return record

        if session is not None:
            return _upsert(session)
        else:
            with Session(get_engine()) as session:
                return _upsert(session)

    @staticmethod
    def get_by_asset(asset_id: int, session: Optional[Session] = None) -> List[AssetPrice]:
        """Get the price history for an asset, newest first."""
        def _get_by_asset(sess: Session) -> List[AssetPrice]:
            statement = select(AssetPrice).where(
                AssetPrice.asset_id == asset_id
            ).order_by(AssetPrice.price_date.desc())
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_by_asset(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_asset(session)
