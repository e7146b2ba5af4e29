"""
Transaction service - the write boundary around the ledger engine.

Every mutation of an asset's transaction log runs as one unit of work:
insert/delete the row, replay the full persisted log, overwrite the stored
Position, commit. The unit is serialized per asset and retried with tenacity
on transient database errors; on failure nothing is committed.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import date
from typing import Callable, Dict, List, Optional

from sqlalchemy.exc import OperationalError
from sqlmodel import Session
from tenacity import Retrying, stop_after_attempt, wait_exponential, retry_if_exception_type

from config import get_settings
from db_engine import get_engine
from models import Asset, Position, Transaction
from repositories.asset_repository import AssetRepository
from repositories.position_repository import PositionRepository
from repositories.transaction_repository import TransactionRepository
from services.errors import (
    AssetNotFoundError,
    LedgerError,
    OversellError,
    RecomputeFailure,
    TransactionNotFoundError,
    ValidationError,
)
from services.ledger import QUANTITY_EPSILON, PositionSummary, recompute_position, validate_fields

logger = logging.getLogger(__name__)


# Per-asset locks; assets never share one
_asset_locks: Dict[int, threading.Lock] = {}
_asset_locks_guard = threading.Lock()


def asset_lock(asset_id: int) -> threading.Lock:
    """Get the lock serializing writes for one asset."""
    with _asset_locks_guard:
        lock = _asset_locks.get(asset_id)
        if lock is None:
            lock = threading.Lock()
            _asset_locks[asset_id] = lock
        return lock


@dataclass(frozen=True)
class LedgerUpdate:
    """Outcome of a committed mutation."""
    asset_id: int
    transaction_id: int
    position: PositionSummary


class LedgerService:
    """
    Service for recording and removing transactions and serving positions.
    Stored positions are only ever written here, always as a full replay.
    """

    @staticmethod
    def add_transaction(
        asset_id: int,
        transaction_type: str,
        quantity: float,
        unit_price: float,
        transaction_date: date
    ) -> LedgerUpdate:
        """
        Record a BUY or SELL and recompute the asset's position.

        Args:
            asset_id: Asset the transaction belongs to
            transaction_type: "BUY" or "SELL" (case-insensitive)
            quantity: Units traded, > 0
            unit_price: Price per unit, > 0
            transaction_date: Trade date

        Returns:
            LedgerUpdate with the new transaction id and the recomputed position

        Raises:
            ValidationError: Invalid fields; nothing is written
            AssetNotFoundError: Unknown asset
            OversellError: The SELL exceeds open lots and short positions are disabled
            RecomputeFailure: The unit of work kept failing; nothing is written
        """
        tx_type = validate_fields(transaction_type, quantity, unit_price, transaction_date)

        def _insert(sess: Session) -> int:
            transaction = TransactionRepository.add(
                sess,
                asset_id=asset_id,
                transaction_date=transaction_date,
                transaction_type=tx_type.value,
                quantity=float(quantity),
                unit_price=float(unit_price)
            )
            return transaction.id

        with asset_lock(asset_id):
            transaction_id, summary = LedgerService._run_unit_of_work(asset_id, _insert)

        logger.info(
            f"Recorded {tx_type.value} {quantity} @ {unit_price} for asset {asset_id} "
            f"(transaction {transaction_id}); quantity now {summary.current_quantity}"
        )
        return LedgerUpdate(asset_id=asset_id, transaction_id=transaction_id, position=summary)

    @staticmethod
    def delete_transaction(transaction_id: int) -> LedgerUpdate:
        """
        Remove a transaction and recompute the owning asset's position.

        Raises:
            TransactionNotFoundError: Unknown transaction
            OversellError: Removing a BUY would leave later SELLs uncovered
                and short positions are disabled
            RecomputeFailure: The unit of work kept failing; nothing is written
        """
        transaction = TransactionRepository.get_by_id(transaction_id)
        if transaction is None:
            raise TransactionNotFoundError(transaction_id)
        asset_id = transaction.asset_id

        def _delete(sess: Session) -> int:
            if not TransactionRepository.delete(sess, transaction_id):
                raise TransactionNotFoundError(transaction_id)
            return transaction_id

        with asset_lock(asset_id):
            _, summary = LedgerService._run_unit_of_work(asset_id, _delete)

        logger.info(
            f"Deleted transaction {transaction_id} of asset {asset_id}; "
            f"quantity now {summary.current_quantity}"
        )
        return LedgerUpdate(asset_id=asset_id, transaction_id=transaction_id, position=summary)

    @staticmethod
    def rebuild_position(asset_id: int) -> PositionSummary:
        """Replay an asset's log and overwrite its stored position."""
        with asset_lock(asset_id):
            _, summary = LedgerService._run_unit_of_work(asset_id, None)
        return summary

    @staticmethod
    def reconcile_positions() -> List[int]:
        """
        Compare every stored position with a fresh replay and rewrite the ones
        that differ or are missing.

        An asset whose log cannot be replayed is logged and skipped; the
        remaining assets are still reconciled.

        Returns:
            IDs of the assets whose stored position was rewritten
        """
        drifted = []
        failed = []
        for asset in AssetRepository.get_all():
            with asset_lock(asset.id):
                try:
                    with Session(get_engine()) as session:
                        stored = PositionRepository.get(asset.id, session=session)
                        replay = recompute_position(
                            TransactionRepository.get_by_asset(asset.id, session=session),
                            asset_id=asset.id
                        )
                        in_sync = stored is not None and PositionRepository.matches(stored, replay)
                    if in_sync:
                        continue
                    logger.warning(f"Position for asset {asset.id} out of sync with its transactions; rebuilding")
                    LedgerService._run_unit_of_work(asset.id, None)
                    drifted.append(asset.id)
                except LedgerError as e:
                    logger.error(f"Could not reconcile asset {asset.id}: {e}")
                    failed.append(asset.id)

        logger.info(f"Reconciled positions: {len(drifted)} rebuilt, {len(failed)} failed")
        return drifted

    @staticmethod
    def get_position(asset_id: int) -> Position:
        """
        Get the stored position for an asset.
        A missing row is rebuilt from the transaction log first.

        Raises:
            AssetNotFoundError: Unknown asset
        """
        position = PositionRepository.get(asset_id)
        if position is not None:
            return position

        if AssetRepository.get_by_id(asset_id) is None:
            raise AssetNotFoundError(asset_id)
        LedgerService.rebuild_position(asset_id)
        return PositionRepository.get(asset_id)

    @staticmethod
    def list_transactions(asset_id: int) -> List[Transaction]:
        """List an asset's transactions, newest first."""
        return TransactionRepository.get_by_asset(asset_id, newest_first=True)

    @staticmethod
    def _run_unit_of_work(
        asset_id: int,
        mutate: Optional[Callable[[Session], int]]
    ) -> tuple:
        """
        Run mutate + replay + overwrite, retrying transient database errors.

        Returns:
            (mutate result, PositionSummary)
        """
        settings = get_settings()
        retrying = Retrying(
            stop=stop_after_attempt(max(1, settings.recompute_max_attempts)),
            wait=wait_exponential(multiplier=0.1, min=0.1, max=2),
            retry=retry_if_exception_type(OperationalError),
            reraise=True
        )
        try:
            for attempt in retrying:
                with attempt:
                    return LedgerService._apply(asset_id, mutate, settings.allow_short_positions)
        except OperationalError as e:
            logger.error(f"Giving up on asset {asset_id} after {settings.recompute_max_attempts} attempts: {e}")
            raise RecomputeFailure(asset_id, e) from e

    @staticmethod
    def _apply(
        asset_id: int,
        mutate: Optional[Callable[[Session], int]],
        allow_short_positions: bool
    ) -> tuple:
        with Session(get_engine()) as session:
            try:
                asset = session.get(Asset, asset_id, with_for_update=True)
                if asset is None:
                    raise AssetNotFoundError(asset_id)

                result = None
                unmatched_before = 0.0
                if mutate is not None:
                    if not allow_short_positions:
                        unmatched_before = LedgerService._baseline_unmatched(asset_id, session)
                    result = mutate(session)

                transactions = TransactionRepository.get_by_asset(asset_id, session=session)
                summary = recompute_position(transactions, asset_id=asset_id)

                # A rebuild reflects the log as stored; only new writes are policed
                oversold = summary.unmatched_sell_quantity - unmatched_before
                if mutate is not None and not allow_short_positions and oversold > QUANTITY_EPSILON:
                    raise OversellError(asset_id, oversold)
                if mutate is None and summary.unmatched_sell_quantity > 0:
                    logger.warning(
                        f"Asset {asset_id} history sells {summary.unmatched_sell_quantity} units "
                        f"beyond its open lots"
                    )

                PositionRepository.overwrite(asset_id, summary, session=session, commit=False)
                session.commit()
            except Exception:
                session.rollback()
                raise
        return result, summary

    @staticmethod
    def _baseline_unmatched(asset_id: int, session: Session) -> float:
        """
        Unmatched sell quantity of the log before a mutation.

        A log that no longer replays (e.g. a row written outside the service)
        gives a baseline of 0, so the replay after the mutation alone decides
        whether the write is accepted. Deleting the offending row is then the
        way to repair the asset.
        """
        try:
            return recompute_position(
                TransactionRepository.get_by_asset(asset_id, session=session),
                asset_id=asset_id
            ).unmatched_sell_quantity
        except ValidationError as e:
            logger.warning(f"Asset {asset_id} log does not replay before this write: {e}")
            return 0.0
