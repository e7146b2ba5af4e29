"""
Transaction Repository - data access layer for Transaction model.
Reads take an optional session for transaction reuse. Writes only stage rows
in the caller's session; LedgerService owns the commit so the stored
Position is always rewritten in the same unit of work.
"""

from typing import Optional, List
from datetime import date
from sqlmodel import Session, select

from db_engine import get_engine
from models import Transaction


class TransactionRepository:
    """Repository for Transaction reads and staged writes."""

    @staticmethod
    def add(
        session: Session,
        asset_id: int,
        transaction_date: date,
        transaction_type: str,
        quantity: float,
        unit_price: float
    ) -> Transaction:
        """
        Stage a new transaction in the caller's session.
        The row is flushed to obtain its id but not committed.

        Args:
            session: Session of the enclosing unit of work
            asset_id: Asset ID for the transaction
            transaction_date: Date of the transaction
            transaction_type: 'BUY' or 'SELL'
            quantity: Number of shares/units
            unit_price: Price per unit

        Returns:
            Created Transaction object
        """
        transaction = Transaction(
            asset_id=asset_id,
            transaction_date=transaction_date,
            transaction_type=transaction_type,
            quantity=quantity,
            unit_price=unit_price
        )
        session.add(transaction)
        session.flush()
        return transaction

    @staticmethod
    def get_by_asset(
        asset_id: int,
        session: Optional[Session] = None,
        newest_first: bool = False
    ) -> List[Transaction]:
        """
        Retrieve all transactions for a specific asset, ordered by date then id.

        Args:
            asset_id: Asset ID to look up
            session: Optional existing session for transaction reuse
            newest_first: Reverse the order (display order)

        Returns:
            List of Transaction objects
        """
        def _get_by_asset(sess: Session) -> List[Transaction]:
            statement = select(Transaction).where(Transaction.asset_id == asset_id)
            if newest_first:
                statement = statement.order_by(Transaction.transaction_date.desc(), Transaction.id.desc())
            else:
                statement = statement.order_by(Transaction.transaction_date, Transaction.id)
            results = sess.exec(statement)
            return list(results.all())

        if session is not None:
            return _get_by_asset(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_asset(session)

    @staticmethod
    def get_by_id(transaction_id: int, session: Optional[Session] = None) -> Optional[Transaction]:
        """
        Retrieve a transaction by its ID.

        Args:
            transaction_id: Transaction ID to look up
            session: Optional existing session for transaction reuse

        Returns:
            Transaction object or None if not found
        """
        def _get_by_id(sess: Session) -> Optional[Transaction]:
            return sess.get(Transaction, transaction_id)

        if session is not None:
            return _get_by_id(session)
        else:
            with Session(get_engine()) as session:
                return _get_by_id(session)

    @staticmethod
    def delete(session: Session, transaction_id: int) -> bool:
        """
        Stage the deletion of a transaction in the caller's session.

        Args:
            session: Session of the enclosing unit of work
            transaction_id: Transaction ID to delete

        Returns:
            True if a row was deleted, False if it did not exist
        """
        transaction = session.get(Transaction, transaction_id)
        if transaction is None:
            return False
        session.delete(transaction)
        session.flush()
        return True
