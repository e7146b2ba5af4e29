"""
Shared fixtures: a fresh SQLite database per test and transaction builders.
"""

from datetime import date

import pytest

from config import reload_settings
from db_engine import init_db, reset_engine
from models import Transaction
from repositories import AssetRepository


def make_tx(transaction_type, quantity, unit_price, transaction_date, id=None, asset_id=1):
    """Build an unsaved Transaction row."""
    return Transaction(
        id=id,
        asset_id=asset_id,
        transaction_type=transaction_type,
        quantity=quantity,
        unit_price=unit_price,
        transaction_date=transaction_date,
    )


@pytest.fixture
def configure(tmp_path):
    """Point settings and the engine at a temporary database, with overrides."""
    database_url = f"sqlite:///{tmp_path / 'ledger.db'}"

    def _configure(**overrides):
        reset_engine()
        settings = reload_settings(database_url=database_url, **overrides)
        init_db()
        return settings

    yield _configure
    reset_engine()
    reload_settings()


@pytest.fixture
def db(configure):
    """Fresh database with default settings."""
    return configure()


@pytest.fixture
def asset(db):
    """A BRL asset with no transactions."""
    return AssetRepository.add(name="Banco do Brasil", symbol="BBAS3", investment_type="Ações", broker="XP")


@pytest.fixture
def d():
    """Shorthand for dates in 2024."""
    return lambda month, day: date(2024, month, day)
