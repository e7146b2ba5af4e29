"""
Tests for price history, holdings valuation and portfolio breakdowns.
"""

import pytest

from repositories import AssetRepository, PriceRepository
from services.errors import AssetNotFoundError, ValidationError
from services.market_data import MarketDataService, normalize_symbol
from services.portfolio import PortfolioService
from services.transactions import LedgerService


@pytest.fixture
def fx(monkeypatch):
    """Fixed USD->BRL rate, no network."""
    rates = {("USD", "BRL"): 5.0}

    def get_exchange_rate(from_currency, to_currency="BRL"):
        if from_currency == to_currency:
            return 1.0
        return rates.get((from_currency, to_currency))

    monkeypatch.setattr(MarketDataService, "get_exchange_rate", staticmethod(get_exchange_rate))
    return rates


@pytest.fixture
def book(db, fx, d):
    """Three assets across two brokers and both currencies."""
    petr = AssetRepository.add(name="Petrobras", symbol="PETR4", investment_type="Ações", broker="XP")
    hglg = AssetRepository.add(name="HGLG11", symbol="HGLG11", investment_type="FII", broker="Rico")
    aapl = AssetRepository.add(name="Apple", symbol="AAPL", investment_type="Ações", broker="Avenue", currency="USD")

    LedgerService.add_transaction(petr.id, "BUY", 100, 30, d(1, 2))
    LedgerService.add_transaction(petr.id, "SELL", 50, 36, d(3, 1))
    LedgerService.add_transaction(hglg.id, "BUY", 10, 160, d(2, 1))
    LedgerService.add_transaction(aapl.id, "BUY", 2, 180, d(2, 5))

    PortfolioService.record_price(petr.id, 40, d(4, 1))
    PortfolioService.record_price(hglg.id, 150, d(4, 1))
    PortfolioService.record_price(aapl.id, 200, d(4, 1))
    return {"petr": petr, "hglg": hglg, "aapl": aapl}


class TestRecordPrice:

    def test_newer_price_becomes_current(self, asset, d):
        PortfolioService.record_price(asset.id, 27.5, d(1, 10))
        PortfolioService.record_price(asset.id, 28.0, d(1, 11))

        refreshed = AssetRepository.get_by_id(asset.id)
        assert refreshed.current_price == 28.0
        assert refreshed.price_date == d(1, 11)

    def test_older_price_only_extends_history(self, asset, d):
        PortfolioService.record_price(asset.id, 28.0, d(1, 11))
        PortfolioService.record_price(asset.id, 26.0, d(1, 5))

        assert AssetRepository.get_by_id(asset.id).current_price == 28.0
        assert [p.price for p in PriceRepository.get_by_asset(asset.id)] == [28.0, 26.0]

    def test_same_day_price_is_replaced(self, asset, d):
        PortfolioService.record_price(asset.id, 28.0, d(1, 11))
        PortfolioService.record_price(asset.id, 29.0, d(1, 11))

        history = PriceRepository.get_by_asset(asset.id)
        assert len(history) == 1
        assert history[0].price == 29.0

    def test_price_and_current_price_written_together(self, asset, d, monkeypatch):
        def fail(*args, **kwargs):
            raise RuntimeError("disk full")

        monkeypatch.setattr(AssetRepository, "update_price", staticmethod(fail))
        with pytest.raises(RuntimeError):
            PortfolioService.record_price(asset.id, 30.0, d(1, 12))

        assert PriceRepository.get_by_asset(asset.id) == []

    @pytest.mark.parametrize("price", [0, -1, "10"])
    def test_rejects_bad_price(self, asset, d, price):
        with pytest.raises(ValidationError):
            PortfolioService.record_price(asset.id, price, d(1, 1))

    def test_unknown_asset(self, db, d):
        with pytest.raises(AssetNotFoundError):
            PortfolioService.record_price(77, 10, d(1, 1))


class TestHoldings:

    def test_holding_values_open_lots(self, book):
        holding = PortfolioService.get_asset_holding(book["petr"].id)

        assert holding["quantity"] == 50
        assert holding["avg_cost"] == 30
        assert holding["cost_basis"] == 1500
        assert holding["market_value"] == 2000
        assert holding["unrealized_pnl"] == 500
        assert holding["unrealized_pnl_pct"] == pytest.approx(33.33)
        assert holding["realized_pnl"] == 300
        assert holding["exchange_rate"] is None

    def test_usd_holding_converted_to_base(self, book):
        holding = PortfolioService.get_asset_holding(book["aapl"].id)

        assert holding["market_value"] == 400
        assert holding["exchange_rate"] == 5.0
        assert holding["market_value_base"] == 2000
        assert holding["cost_basis_base"] == 1800

    def test_missing_rate_falls_back_to_configured_rate(self, book, fx):
        fx.clear()
        holding = PortfolioService.get_asset_holding(book["aapl"].id)
        assert holding["exchange_rate"] == 5.0

    def test_unknown_asset_has_no_holding(self, db):
        assert PortfolioService.get_asset_holding(321) is None

    def test_without_quote_position_is_carried_at_cost(self, asset, fx, d):
        LedgerService.add_transaction(asset.id, "BUY", 3, 20, d(1, 1))

        holding = PortfolioService.get_asset_holding(asset.id)
        assert holding["current_price"] == 20
        assert holding["unrealized_pnl"] == 0

    def test_closed_positions_hidden_by_default(self, book, d):
        LedgerService.add_transaction(book["hglg"].id, "SELL", 10, 155, d(4, 2))

        names = [h["name"] for h in PortfolioService.get_holdings()]
        assert "HGLG11" not in names
        assert "HGLG11" in [h["name"] for h in PortfolioService.get_holdings(include_closed=True)]

    def test_filters(self, book):
        holdings = PortfolioService.get_holdings(investment_types=["Ações"], brokers=["XP"])
        assert [h["name"] for h in holdings] == ["Petrobras"]


class TestTotals:

    def test_totals_in_base_currency(self, book):
        totals = PortfolioService.calculate_totals()

        # 50 PETR4 @ 30, 10 HGLG11 @ 160, 2 AAPL @ 180 USD
        assert totals["base_currency"] == "BRL"
        assert totals["total_invested"] == pytest.approx(1500 + 1600 + 1800)
        assert totals["total_value"] == pytest.approx(2000 + 1500 + 2000)
        assert totals["unrealized_pnl"] == pytest.approx(600)
        assert totals["realized_pnl"] == pytest.approx(300)
        assert totals["open_positions"] == 3

    def test_totals_for_empty_portfolio(self, db, fx):
        totals = PortfolioService.calculate_totals()
        assert totals["total_invested"] == 0
        assert totals["unrealized_pnl_pct"] == 0

    def test_group_by_broker(self, book):
        assert PortfolioService.group_by("broker") == {"XP": 2000.0, "Avenue": 2000.0, "Rico": 1500.0}

    def test_group_by_type(self, book):
        assert PortfolioService.group_by("investment_type") == {"Ações": 4000.0, "FII": 1500.0}

    def test_group_by_unknown_field(self, book):
        with pytest.raises(ValidationError):
            PortfolioService.group_by("color")


class TestQuotes:

    def test_refresh_quotes_records_prices(self, book, monkeypatch, d):
        quotes = {"PETR4": 41.0, "AAPL": 210.0}
        monkeypatch.setattr(
            MarketDataService, "get_current_price",
            staticmethod(lambda symbol, currency="BRL": quotes.get(symbol))
        )

        assert PortfolioService.refresh_quotes(d(5, 1)) == 2
        assert AssetRepository.get_by_id(book["petr"].id).current_price == 41.0
        assert AssetRepository.get_by_id(book["hglg"].id).current_price == 150

    def test_normalize_symbol(self):
        assert normalize_symbol("petr4", "BRL") == "PETR4.SA"
        assert normalize_symbol("PETR4.SA", "BRL") == "PETR4.SA"
        assert normalize_symbol("AAPL", "USD") == "AAPL"


class TestSnapshots:

    def test_snapshot_values_position_at_current_price(self, book, d):
        snapshot = PortfolioService.create_snapshot(book["petr"].id, d(4, 30))

        assert snapshot.snapshot_date == d(4, 30)
        assert snapshot.unit_price == 40
        assert snapshot.quantity == 50
        assert snapshot.total_value == 2000
        assert snapshot.base_currency == "BRL"
        assert snapshot.exchange_rate is None

    def test_usd_snapshot_records_rate(self, book, d):
        snapshot = PortfolioService.create_snapshot(book["aapl"].id, d(4, 30))

        assert snapshot.total_value == 2000
        assert snapshot.exchange_rate == 5.0

    def test_same_date_snapshot_is_replaced(self, book, d):
        PortfolioService.create_snapshot(book["petr"].id, d(4, 30))
        PortfolioService.record_price(book["petr"].id, 44, d(4, 30))
        PortfolioService.create_snapshot(book["petr"].id, d(4, 30))

        history = PortfolioService.get_snapshots(book["petr"].id)
        assert len(history) == 1
        assert history[0].total_value == 2200

    def test_batch_skips_closed_positions(self, book, d):
        LedgerService.add_transaction(book["hglg"].id, "SELL", 10, 155, d(4, 2))

        snapshots = PortfolioService.create_batch_snapshots(d(4, 30))

        assert sorted(s.asset_id for s in snapshots) == sorted([book["petr"].id, book["aapl"].id])
        with_closed = PortfolioService.create_batch_snapshots(d(4, 30), include_closed=True)
        assert len(with_closed) == 3

    def test_unknown_asset(self, db, d):
        with pytest.raises(AssetNotFoundError):
            PortfolioService.create_snapshot(77, d(1, 31))

    def test_month_over_month_totals(self, book, d):
        PortfolioService.create_batch_snapshots(d(4, 30))
        PortfolioService.record_price(book["petr"].id, 50, d(5, 31))
        PortfolioService.create_batch_snapshots(d(5, 31))

        totals = PortfolioService.snapshot_totals()

        # 2000 + 1500 + 2000, then PETR4 up by 10 on 50 units
        assert [row["snapshot_date"] for row in totals] == [d(4, 30), d(5, 31)]
        assert totals[0]["total_value"] == 5500
        assert totals[0]["change"] == 0
        assert totals[1]["total_value"] == 6000
        assert totals[1]["change"] == 500
        assert totals[1]["change_pct"] == pytest.approx(9.09)

    def test_no_snapshots(self, db):
        assert PortfolioService.snapshot_totals() == []
