"""
Asset Repository - data access layer for Asset model.
Optimized with optional session parameter for transaction reuse.
"""

from typing import Optional, List
from sqlmodel import Session, select

from db_engine import get_engine
from models import Asset


class AssetRepository:
    """Repository for Asset CRUD operations."""

    @staticmethod
    def add(
        name: str,
        investment_type: str = "Outros",
        broker: str = "Outras",
        currency: str = "BRL",
        symbol: Optional[str] = None,
        current_price: Optional[float] = None,
        session: Optional[Session] = None
    ) -> Asset:
        """
        Add a new asset to the database.

        Args:
            name: Display name of the investment
            investment_type: Category used for grouping
            broker: Broker holding the asset
            currency: Quote currency ("BRL" or "USD")
            symbol: Optional quote symbol for market data lookups
            current_price: Optional initial unit price
            session: Optional existing session for transaction reuse

        Returns:
            Created Asset object
        """
        def _create_asset(sess: Session) -> Asset:
            asset = Asset(
                name=name,
                investment_type=investment_type,
                broker=broker,
                currency=currency.upper(),
                symbol=symbol,
                current_price=current_price
            )
            sess.add(asset)
            sess.commit()
            sess.refresh(asset)
            return asset

        if session is not None:
            return _create_asset(session)
        else:
            with Session(get_engine()) as session:
                return _create_asset(session)

    @staticmethod
    def get_all(session: Optional[Session] = None) -> List[Asset]:
        """
        Retrieve all assets from the database.

        Args:
            session: Optional existing session for transaction reuse

        Returns:
            List of all Asset objects
        """
        def _get_all(sess: Session) -> List[Asset]:
            statement = select(Asset).order_by(Asset.id)
            results = sess.exec(statement)
            return list(results.all())

        if session is not None:
            return _get_all(session)
        else:
            with Session(get_engine()) as session:
                return _get_all(session)

    @staticmethod
    def get_by_id(asset_id: int, session: Optional[Session] = None) -> Optional[Asset]:
        """
        Retrieve an asset by its ID.

        Args:
            asset_id: Asset ID to look up
            session: Optional existing session for transaction reuse

        Returns:
            Asset object or None if not found
        """
        def _get_by_id(sess: Session) -> Optional[Asset]:
            return sess.get(Asset, asset_id)

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def update(
        asset_id: int,
        name: Optional[str] = None,
        investment_type: Optional[str] = None,
        broker: Optional[str] = None,
        currency: Optional[str] = None,
        symbol: Optional[str] = None,
        session: Optional[Session] = None
    ) -> Optional[Asset]:
        """
        Update an asset's descriptive fields.
        Arguments left as None keep their value; an empty symbol clears it.

        Returns:
            Updated Asset object or None if not found
        """
        def _update(sess: Session) -> Optional[Asset]:
            asset = sess.get(Asset, asset_id)
            if asset:
                if name is not None:
                    asset.name = name
                if investment_type is not None:
                    asset.investment_type = investment_type
                if broker is not None:
                    asset.broker = broker
                if currency is not None:
                    asset.currency = currency.upper()
                if symbol is not None:
                    asset.symbol = symbol or None
                sess.add(asset)
                sess.commit()
                sess.refresh(asset)
                return asset
            return None

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def update_price(
        asset_id: int,
        price: float,
        price_date,
        session: Optional[Session] = None,
        commit: bool = True
    ) -> Optional[Asset]:
        """
        Set the current unit price of an asset.

        Returns:
            Updated Asset object or None if not found
        """
        def _update(sess: Session) -> Optional[Asset]:
            asset = sess.get(Asset, asset_id)
            if asset:
                asset.current_price = price
                asset.price_date = price_date
                sess.add(asset)
                if commit:
                    sess.commit()
                    sess.refresh(asset)
                else:
                    sess.flush()
                return asset
            return None

        if session is not None:
            return _update(session)
        else:
            with Session(get_engine()) as session:
                return _update(session)

    @staticmethod
    def delete(asset_id: int, session: Optional[Session] = None) -> bool:
        """
        Delete an asset together with its transactions, prices, snapshots and position.
        Dependent rows go first due to foreign key constraints.

        Args:
            asset_id: Asset ID to delete
            session: Optional existing session for transaction reuse

        Returns:
            True if successful, False otherwise
        """
        from models import Transaction, AssetPrice, AssetSnapshot, Position

        def _delete(sess: Session) -> bool:
            try:
                for model in (Transaction, AssetPrice, AssetSnapshot):
                    statement = select(model).where(model.asset_id == asset_id)
                    for row in sess.exec(statement).all():
                        sess.delete(row)

                position = sess.get(Position, asset_id)
                if position:
                    sess.delete(position)

                asset = sess.get(Asset, asset_id)
                if asset:
                    sess.delete(asset)
                    sess.commit()
                    return True
                sess.rollback()
                return False
            except Exception as e:
                sess.rollback()
                raise e

        if session is not None:
            return _delete(session)
        else:
            with Session(get_engine()) as session:
                return _delete(session)
