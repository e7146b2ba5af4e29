"""
Tests for repository helpers not covered through the services.
"""

from sqlmodel import Session

from db_engine import get_engine
from models import Asset, AssetPrice, AssetSnapshot, Position, Transaction
from repositories import (
    AssetRepository,
    PositionRepository,
    PriceRepository,
    SnapshotRepository,
    TransactionRepository,
)
from services.ledger import PositionSummary
from services.portfolio import PortfolioService
from services.transactions import LedgerService


def test_asset_currency_is_uppercased(db):
    assert AssetRepository.add(name="Nubank", currency="usd").currency == "USD"


def test_update_changes_only_given_fields(asset):
    updated = AssetRepository.update(asset.id, broker="Rico", currency="usd")

    assert updated.broker == "Rico"
    assert updated.currency == "USD"
    assert updated.name == "Banco do Brasil"
    assert updated.symbol == "BBAS3"


def test_update_with_empty_symbol_clears_it(asset):
    assert AssetRepository.update(asset.id, symbol="").symbol is None


def test_update_unknown_asset(db):
    assert AssetRepository.update(555, name="Ghost") is None


def test_delete_asset_removes_dependent_rows(asset, d):
    other = AssetRepository.add(name="Vale", symbol="VALE3")
    LedgerService.add_transaction(asset.id, "BUY", 1, 10, d(1, 1))
    LedgerService.add_transaction(other.id, "BUY", 2, 60, d(1, 1))
    PortfolioService.record_price(asset.id, 11, d(1, 2))
    PortfolioService.create_snapshot(asset.id, d(1, 31))

    assert AssetRepository.delete(asset.id) is True

    assert AssetRepository.get_by_id(asset.id) is None
    assert TransactionRepository.get_by_asset(asset.id) == []
    assert PriceRepository.get_by_asset(asset.id) == []
    assert SnapshotRepository.get_history(asset.id) == []
    assert PositionRepository.get(asset.id) is None
    assert [p.asset_id for p in PositionRepository.get_all()] == [other.id]
    assert len(TransactionRepository.get_by_asset(other.id)) == 1


def test_delete_unknown_asset(db):
    assert AssetRepository.delete(555) is False


def test_transaction_writes_are_staged_until_the_caller_commits(asset, d):
    LedgerService.add_transaction(asset.id, "BUY", 3, 10, d(1, 1))

    with Session(get_engine()) as session:
        staged = TransactionRepository.add(session, asset.id, d(1, 2), "BUY", 5, 10)
        assert staged.id is not None
        existing = TransactionRepository.get_by_asset(asset.id, session=session)[0]
        assert TransactionRepository.delete(session, existing.id) is True
        # closing without commit discards both

    assert len(TransactionRepository.get_by_asset(asset.id)) == 1
    assert LedgerService.get_position(asset.id).current_quantity == 3
    assert LedgerService.reconcile_positions() == []


def test_staged_delete_of_unknown_transaction(db):
    with Session(get_engine()) as session:
        assert TransactionRepository.delete(session, 12345) is False


def test_snapshot_save_upserts_per_asset_and_date(asset, d):
    first = SnapshotRepository.save(AssetSnapshot(
        asset_id=asset.id, snapshot_date=d(1, 31), unit_price=10, quantity=2, total_value=20
    ))
    second = SnapshotRepository.save(AssetSnapshot(
        asset_id=asset.id, snapshot_date=d(1, 31), unit_price=12, quantity=2, total_value=24
    ))

    assert second.id == first.id
    history = SnapshotRepository.get_history(asset.id)
    assert len(history) == 1
    assert history[0].total_value == 24


def test_snapshot_history_date_range(asset, d):
    for month, day in ((1, 31), (2, 29), (3, 31)):
        SnapshotRepository.save(AssetSnapshot(
            asset_id=asset.id, snapshot_date=d(month, day), unit_price=10, quantity=1, total_value=10
        ))

    dates = [s.snapshot_date for s in SnapshotRepository.get_history(start_date=d(2, 1), end_date=d(3, 31))]
    assert dates == [d(3, 31), d(2, 29)]


class TestTimestamps:
    """New rows carry timezone-aware UTC timestamps."""

    def test_model_defaults_are_aware(self, d):
        rows = [
            Asset(name="Itaú"),
            Transaction(asset_id=1, transaction_date=d(1, 1), transaction_type="BUY", quantity=1, unit_price=1),
            AssetPrice(asset_id=1, price_date=d(1, 1), price=1),
            AssetSnapshot(asset_id=1, snapshot_date=d(1, 1), unit_price=1, quantity=1, total_value=1),
        ]
        for row in rows:
            assert row.created_at.tzinfo is not None
        assert Position(asset_id=1).updated_at.tzinfo is not None

    def test_overwrite_stamps_aware_updated_at(self, asset):
        with Session(get_engine()) as session:
            position = PositionRepository.overwrite(asset.id, PositionSummary(), session=session, commit=False)
            assert position.updated_at.tzinfo is not None
