"""
Position ledger engine.
Replays an asset's BUY/SELL history with FIFO lot matching to derive the
held quantity, average cost of the open lots and realized profit/loss.
Pure functions only: no I/O and no state kept between calls.
"""

import logging
import math
from collections import deque
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from services.errors import ValidationError

logger = logging.getLogger(__name__)

# Float residue below this is treated as zero units
QUANTITY_EPSILON = 1e-9


class TransactionType(str, Enum):
    """Side of a transaction."""
    BUY = "BUY"
    SELL = "SELL"


@dataclass
class Lot:
    """An open purchase batch, consumed front-first by sells."""
    remaining_quantity: float
    unit_cost: float
    transaction_id: Optional[int] = None


@dataclass(frozen=True)
class PositionSummary:
    """Result of replaying one asset's transaction log."""
    asset_id: Optional[int] = None
    current_quantity: float = 0.0
    average_purchase_price: float = 0.0
    realized_profit_loss: float = 0.0
    is_closed: bool = True
    total_invested: float = 0.0  # Cost of every unit ever bought
    total_sold_quantity: float = 0.0
    total_sold_value: float = 0.0
    cost_basis: float = 0.0  # Cost of the open lots
    unmatched_sell_quantity: float = 0.0  # Units sold beyond open lots
    open_lots: Tuple[Lot, ...] = field(default_factory=tuple)
    transaction_count: int = 0

    @property
    def is_short(self) -> bool:
        return self.current_quantity < 0


def _snap(value: float) -> float:
    """Collapse float residue around zero to an exact 0.0."""
    return 0.0 if abs(value) < QUANTITY_EPSILON else value


def _is_positive_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value) and value > 0


def normalize_type(transaction_type: Any) -> TransactionType:
    """
    Parse a transaction type, accepting enum members or case-insensitive strings.

    Raises:
        ValidationError: If the value is not BUY or SELL
    """
    if isinstance(transaction_type, TransactionType):
        return transaction_type
    if isinstance(transaction_type, str):
        try:
            return TransactionType(transaction_type.strip().upper())
        except ValueError:
            pass
    raise ValidationError(
        f"Unknown transaction type: {transaction_type!r}", field="transaction_type"
    )


def validate_fields(
    transaction_type: Any,
    quantity: Any,
    unit_price: Any,
    transaction_date: Any
) -> TransactionType:
    """
    Check the constraints every transaction must satisfy before it is stored
    or replayed.

    Returns:
        The parsed TransactionType

    Raises:
        ValidationError: On the first violated constraint
    """
    tx_type = normalize_type(transaction_type)
    if not _is_positive_number(quantity):
        raise ValidationError(f"Quantity must be a positive number, got {quantity!r}", field="quantity")
    if quantity < QUANTITY_EPSILON:
        raise ValidationError(
            f"Quantity {quantity!r} is below the smallest tracked amount {QUANTITY_EPSILON:g}", field="quantity"
        )
    if not _is_positive_number(unit_price):
        raise ValidationError(f"Unit price must be a positive number, got {unit_price!r}", field="unit_price")
    # datetime is a date subclass but does not compare with plain dates
    if isinstance(transaction_date, datetime) or not isinstance(transaction_date, date):
        raise ValidationError(
            f"Transaction date must be a date, got {transaction_date!r}", field="transaction_date"
        )
    return tx_type


def validate_transaction(tx: Any) -> TransactionType:
    """Validate a Transaction row (or any object with the same attributes)."""
    return validate_fields(tx.transaction_type, tx.quantity, tx.unit_price, tx.transaction_date)


def sort_transactions(transactions: Iterable[Any]) -> List[Any]:
    """
    Order transactions for replay.

    Ascending by transaction_date. Same-day rows keep insertion order: persisted
    rows by id, unsaved rows (id None) after them in the order given.
    """
    return sorted(transactions, key=_replay_key)


def _replay_key(tx: Any) -> tuple:
    tx_id = getattr(tx, 'id', None)
    return (tx.transaction_date, tx_id is None, tx_id or 0)


def recompute_position(transactions: Iterable[Any], asset_id: Optional[int] = None) -> PositionSummary:
    """
    Replay an asset's transactions under FIFO matching.

    Args:
        transactions: Transaction rows for a single asset, in any order
        asset_id: Expected asset; inferred from the rows when omitted

    Returns:
        PositionSummary for the asset. An empty history yields a closed,
        all-zero position.

    Raises:
        ValidationError: If a row is invalid or the rows span several assets

    A SELL larger than the open lots drains the queue and the remainder is
    reported as unmatched_sell_quantity; current_quantity goes negative.
    Rejecting that case is the caller's policy decision.
    """
    transactions = list(transactions)

    asset_ids = {tx.asset_id for tx in transactions}
    if asset_id is not None:
        asset_ids.add(asset_id)
    if len(asset_ids) > 1:
        raise ValidationError(
            f"Transactions span several assets: {sorted(asset_ids, key=str)}", field="asset_id"
        )
    resolved_asset_id = next(iter(asset_ids), None)

    parsed = [(tx, validate_transaction(tx)) for tx in transactions]
    parsed.sort(key=lambda item: _replay_key(item[0]))

    lots: deque = deque()
    current_quantity = 0.0
    total_invested = 0.0
    total_sold_quantity = 0.0
    total_sold_value = 0.0
    realized_profit_loss = 0.0
    unmatched = 0.0

    for tx, tx_type in parsed:
        quantity = float(tx.quantity)
        price = float(tx.unit_price)

        if tx_type is TransactionType.BUY:
            lots.append(Lot(quantity, price, getattr(tx, 'id', None)))
            current_quantity += quantity
            total_invested += quantity * price
            continue

        remaining_to_sell = quantity
        total_sold_quantity += quantity
        total_sold_value += quantity * price

        while remaining_to_sell > 0 and lots:
            oldest = lots[0]
            matched = min(remaining_to_sell, oldest.remaining_quantity)
            realized_profit_loss += matched * (price - oldest.unit_cost)
            oldest.remaining_quantity = _snap(oldest.remaining_quantity - matched)
            remaining_to_sell = _snap(remaining_to_sell - matched)
            if oldest.remaining_quantity == 0:
                lots.popleft()

        if remaining_to_sell > 0:
            logger.debug(
                f"Sell {getattr(tx, 'id', None)} on {tx.transaction_date} "
                f"exceeds open lots by {remaining_to_sell}"
            )
            unmatched += remaining_to_sell

        current_quantity = _snap(current_quantity - quantity)

    cost_basis = sum((lot.remaining_quantity * lot.unit_cost for lot in lots), 0.0)
    average_purchase_price = cost_basis / current_quantity if current_quantity > 0 and lots else 0.0

    return PositionSummary(
        asset_id=resolved_asset_id,
        current_quantity=current_quantity,
        average_purchase_price=average_purchase_price,
        realized_profit_loss=realized_profit_loss,
        is_closed=current_quantity == 0,
        total_invested=total_invested,
        total_sold_quantity=total_sold_quantity,
        total_sold_value=total_sold_value,
        cost_basis=cost_basis,
        unmatched_sell_quantity=_snap(unmatched),
        open_lots=tuple(Lot(lot.remaining_quantity, lot.unit_cost, lot.transaction_id) for lot in lots),
        transaction_count=len(parsed),
    )
