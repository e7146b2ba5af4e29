"""
Snapshot Repository - data access layer for AssetSnapshot model.
"""

from typing import Optional, List
from datetime import date, datetime, timezone
from sqlmodel import Session, select

from db_engine import get_engine
from models import AssetSnapshot


class SnapshotRepository:
    """Repository for AssetSnapshot operations."""

    @staticmethod
    def save(snapshot: AssetSnapshot, session: Optional[Session] = None) -> AssetSnapshot:
        """
        Save or update a snapshot.
        Uses upsert logic: if one exists for asset_id + snapshot_date, update; otherwise insert.
        """
        def _save(sess: Session) -> AssetSnapshot:
            statement = select(AssetSnapshot).where(
                AssetSnapshot.asset_id == snapshot.asset_id,
                AssetSnapshot.snapshot_date == snapshot.snapshot_date
            )
            existing = sess.exec(statement).first()

            if existing:
                existing.unit_price = snapshot.unit_price
                existing.quantity = snapshot.quantity
                existing.total_value = snapshot.total_value
                existing.base_currency = snapshot.base_currency
                existing.exchange_rate = snapshot.exchange_rate
                existing.updated_at = datetime.now(timezone.utc)
                record = existing
            else:
                record = snapshot
            sess.add(record)
            sess.commit()
            sess.refresh(record)
            return record

        if session is not None:
            return _save(session)
        else:
            with Session(get_engine()) as session:
                return _save(session)

    @staticmethod
    def get_history(
        asset_id: Optional[int] = None,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
        session: Optional[Session] = None
    ) -> List[AssetSnapshot]:
        """
        Get snapshots, newest first.

        Args:
            asset_id: Only this asset's snapshots (default: all assets)
            start_date: Earliest snapshot_date to include
            end_date: Latest snapshot_date to include
            session: Optional existing session for transaction reuse
        """
        def _get_history(sess: Session) -> List[AssetSnapshot]:
            statement = select(AssetSnapshot)
            if asset_id is not None:
                statement = statement.where(AssetSnapshot.asset_id == asset_id)
            if start_date is not None:
                statement = statement.where(AssetSnapshot.snapshot_date >= start_date)
            if end_date is not None:
                statement = statement.where(AssetSnapshot.snapshot_date <= end_date)
            statement = statement.order_by(AssetSnapshot.snapshot_date.desc(), AssetSnapshot.asset_id)
            return list(sess.exec(statement).all())

        if session is not None:
            return _get_history(session)
        else:
            with Session(get_engine()) as session:
                return _get_history(session)
