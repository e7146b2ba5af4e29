"""
Position Repository - data access layer for the stored Position summaries.
"""

from typing import TYPE_CHECKING, Optional, List
from datetime import datetime, timezone
from sqlmodel import Session, select

from db_engine import get_engine
from models import Position

if TYPE_CHECKING:
    from services.ledger import PositionSummary


class PositionRepository:
    """Repository for Position reads and full overwrites."""

    @staticmethod
    def get(asset_id: int, session: Optional[Session] = None) -> Optional[Position]:
        """Retrieve the stored position for an asset, or None."""
        def _get(sess: Session) -> Optional[Position]:
            return sess.get(Position, asset_id)

        if session is not None:
            return _get(session)
        else:
            with Session(get_engine()) as session:
                return _get(session)

    @staticmethod
    def get_all(session: Optional[Session] = None) -> List[Position]:
        """Retrieve all stored positions."""
        def _get_all(sess: Session) -> List[Position]:
            return list(sess.exec(select(Position)).all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def overwrite(
        asset_id: int,
        summary: "PositionSummary",
        session: Optional[Session] = None,
        commit: bool = True
    ) -> Position:
        """
        Replace every field of the asset's stored position with a replay result.

        Args:
            asset_id: Asset the position belongs to
            summary: Output of recompute_position for the asset
            session: Optional existing session for transaction reuse
            commit: Commit immediately; otherwise only flush

        Returns:
            The stored Position row
        """
        def _overwrite(sess: Session) -> Position:
            position = sess.get(Position, asset_id)
            if position is None:
                position = Position(asset_id=asset_id)
            position.current_quantity = summary.current_quantity
            position.average_purchase_price = summary.average_purchase_price
            position.realized_profit_loss = summary.realized_profit_loss
            position.is_closed = summary.is_closed
            position.total_invested = summary.total_invested
            position.total_sold_quantity = summary.total_sold_quantity
            position.total_sold_value = summary.total_sold_value
            position.cost_basis = summary.cost_basis
            position.transaction_count = summary.transaction_count
            position.updated_at = datetime.now(timezone.utc)
            sess.add(position)
            if commit:
                sess.commit()
                sess.refresh(position)
            else:
                sess.flush()
            return position

        if session is not None:
            return _overwrite(session)
        else:
            with Session(get_engine()) as session:
                return _overwrite(session)

    @staticmethod
    def matches(position: Position, summary: "PositionSummary", tolerance: float = 1e-9) -> bool:
        """Check whether a stored row equals a replay result."""
        numeric_fields = (
            'current_quantity',
            'average_purchase_price',
            'realized_profit_loss',
            'total_invested',
            'total_sold_quantity',
            'total_sold_value',
            'cost_basis',
        )
        for name in numeric_fields:
            if abs(getattr(position, name) - getattr(summary, name)) > tolerance:
                return False
        return (
            position.is_closed == summary.is_closed
            and position.transaction_count == summary.transaction_count
        )
