"""
Command-line interface for the position ledger.

Usage:
    python cli.py init-db
    python cli.py add-asset "Banco do Brasil" --symbol BBAS3 --type Ações --broker XP
    python cli.py edit-asset 1 --broker Rico
    python cli.py buy 1 100 27.50 --date 2024-03-01
    python cli.py sell 1 40 31.20 --date 2024-06-10
    python cli.py delete-tx 7
    python cli.py position 1
    python cli.py portfolio --group-by broker
    python cli.py snapshot --date 2024-06-30
    python cli.py reconcile
"""

import argparse
import logging
import sys
from datetime import date
from typing import List, Optional

from config import get_settings
from db_engine import init_db
from services.assets import SUPPORTED_CURRENCIES, AssetService
from services.errors import LedgerError
from services.portfolio import GROUP_FIELDS, PortfolioService
from services.transactions import LedgerService

logger = logging.getLogger(__name__)


def _parse_date(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"invalid date {value!r}, expected YYYY-MM-DD")


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="position-ledger",
        description="Record investment transactions and track FIFO positions",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    sub.add_parser("init-db", help="Create the database tables")

    p = sub.add_parser("add-asset", help="Register an investment")
    p.add_argument("name")
    p.add_argument("--symbol")
    p.add_argument("--type", dest="investment_type", default="Outros")
    p.add_argument("--broker", default="Outras")
    p.add_argument("--currency", default="BRL", choices=SUPPORTED_CURRENCIES)

    sub.add_parser("assets", help="List registered investments")

    p = sub.add_parser("edit-asset", help="Edit an investment's details")
    p.add_argument("asset_id", type=int)
    p.add_argument("--name")
    p.add_argument("--symbol", help="Quote symbol; pass \"\" to clear")
    p.add_argument("--type", dest="investment_type")
    p.add_argument("--broker")
    p.add_argument("--currency", choices=SUPPORTED_CURRENCIES)

    p = sub.add_parser("delete-asset", help="Delete an investment and its history")
    p.add_argument("asset_id", type=int)

    for side in ("buy", "sell"):
        p = sub.add_parser(side, help=f"Record a {side.upper()} transaction")
        p.add_argument("asset_id", type=int)
        p.add_argument("quantity", type=float)
        p.add_argument("unit_price", type=float)
        p.add_argument("--date", type=_parse_date, default=None, help="Trade date (default: today)")

    p = sub.add_parser("delete-tx", help="Delete a transaction")
    p.add_argument("transaction_id", type=int)

    p = sub.add_parser("transactions", help="List an asset's transactions")
    p.add_argument("asset_id", type=int)

    p = sub.add_parser("position", help="Show an asset's current position")
    p.add_argument("asset_id", type=int)

    p = sub.add_parser("price", help="Record a unit price for an asset")
    p.add_argument("asset_id", type=int)
    p.add_argument("price", type=float)
    p.add_argument("--date", type=_parse_date, default=None)

    sub.add_parser("refresh-quotes", help="Fetch quotes for assets with a symbol")

    p = sub.add_parser("portfolio", help="Show holdings and totals")
    p.add_argument("--base-currency", default=None)
    p.add_argument("--all", action="store_true", help="Include closed positions")
    p.add_argument("--group-by", choices=GROUP_FIELDS, default=None)

    p = sub.add_parser("snapshot", help="Freeze current valuations (one asset, or all open positions)")
    p.add_argument("asset_id", type=int, nargs="?")
    p.add_argument("--date", type=_parse_date, default=None, help="Snapshot date (default: today)")
    p.add_argument("--base-currency", default=None)

    p = sub.add_parser("snapshots", help="List stored snapshots and monthly totals")
    p.add_argument("--asset", dest="asset_id", type=int, default=None)

    sub.add_parser("reconcile", help="Rebuild positions that drifted from their transactions")

    return parser


def _print_position(position) -> None:
    status = "closed" if position.is_closed else "open"
    print(f"Asset {position.asset_id} ({status})")
    print(f"  Quantity:        {position.current_quantity:g}")
    print(f"  Average price:   {position.average_purchase_price:.4f}")
    print(f"  Cost basis:      {position.cost_basis:.2f}")
    print(f"  Realized P/L:    {position.realized_profit_loss:.2f}")
    print(f"  Total invested:  {position.total_invested:.2f}")
    print(f"  Transactions:    {position.transaction_count}")


def run(args: argparse.Namespace) -> int:
    """Dispatch a parsed command. Returns the process exit code."""
    if args.command == "init-db":
        init_db()
        print("Database initialized")

    elif args.command == "add-asset":
        asset = AssetService.create_asset(
            name=args.name,
            investment_type=args.investment_type,
            broker=args.broker,
            currency=args.currency,
            symbol=args.symbol,
        )
        print(f"Created asset {asset.id}: {asset.name}")

    elif args.command == "assets":
        for asset in AssetService.list_assets():
            print(f"{asset.id:>4}  {asset.name:<30} {asset.investment_type:<12} {asset.broker:<12} {asset.currency}")

    elif args.command == "edit-asset":
        asset = AssetService.update_asset(
            args.asset_id,
            name=args.name,
            investment_type=args.investment_type,
            broker=args.broker,
            currency=args.currency,
            symbol=args.symbol,
        )
        print(f"Updated asset {asset.id}: {asset.name} ({asset.investment_type}, {asset.broker}, {asset.currency})")

    elif args.command == "delete-asset":
        AssetService.delete_asset(args.asset_id)
        print(f"Deleted asset {args.asset_id}")

    elif args.command in ("buy", "sell"):
        update = LedgerService.add_transaction(
            asset_id=args.asset_id,
            transaction_type=args.command.upper(),
            quantity=args.quantity,
            unit_price=args.unit_price,
            transaction_date=args.date or date.today(),
        )
        print(f"Recorded transaction {update.transaction_id}")
        _print_position(update.position)

    elif args.command == "delete-tx":
        update = LedgerService.delete_transaction(args.transaction_id)
        print(f"Deleted transaction {update.transaction_id}")
        _print_position(update.position)

    elif args.command == "transactions":
        for tx in LedgerService.list_transactions(args.asset_id):
            print(f"{tx.id:>5}  {tx.transaction_date}  {tx.transaction_type:<4} {tx.quantity:>12g} @ {tx.unit_price:.4f}")

    elif args.command == "position":
        _print_position(LedgerService.get_position(args.asset_id))

    elif args.command == "price":
        record = PortfolioService.record_price(args.asset_id, args.price, args.date or date.today())
        print(f"Recorded price {record.price} for asset {record.asset_id} on {record.price_date}")

    elif args.command == "refresh-quotes":
        print(f"Updated {PortfolioService.refresh_quotes()} assets")

    elif args.command == "portfolio":
        if args.group_by:
            for label, value in PortfolioService.group_by(args.group_by, args.base_currency).items():
                print(f"{label:<20} {value:>14.2f}")
            return 0

        for h in PortfolioService.get_holdings(args.base_currency, include_closed=args.all):
            print(
                f"{h['asset_id']:>4}  {h['name']:<30} {h['quantity']:>12g} "
                f"{h['market_value_base']:>14.2f} {h['unrealized_pnl_pct']:>8.2f}%"
            )
        totals = PortfolioService.calculate_totals(args.base_currency)
        print(
            f"Total ({totals['base_currency']}): invested {totals['total_invested']:.2f}, "
            f"value {totals['total_value']:.2f}, unrealized {totals['unrealized_pnl']:.2f} "
            f"({totals['unrealized_pnl_pct']:.2f}%), realized {totals['realized_pnl']:.2f}"
        )

    elif args.command == "snapshot":
        if args.asset_id is not None:
            snapshots = [PortfolioService.create_snapshot(args.asset_id, args.date, args.base_currency)]
        else:
            snapshots = PortfolioService.create_batch_snapshots(args.date, args.base_currency)
        for s in snapshots:
            print(f"Snapshot {s.snapshot_date} asset {s.asset_id}: {s.quantity:g} @ {s.unit_price:.4f} = {s.total_value:.2f} {s.base_currency}")
        print(f"Created {len(snapshots)} snapshots")

    elif args.command == "snapshots":
        for s in PortfolioService.get_snapshots(args.asset_id):
            print(f"{s.snapshot_date}  {s.asset_id:>4} {s.quantity:>12g} @ {s.unit_price:>10.4f} {s.total_value:>14.2f} {s.base_currency}")
        if args.asset_id is None:
            for row in PortfolioService.snapshot_totals():
                print(f"Total {row['snapshot_date']}: {row['total_value']:.2f} ({row['change_pct']:+.2f}%)")

    elif args.command == "reconcile":
        drifted = LedgerService.reconcile_positions()
        print(f"Rebuilt {len(drifted)} positions" + (f": {drifted}" if drifted else ""))

    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Entry point."""
    settings = get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args = create_parser().parse_args(argv)
    try:
        return run(args)
    except LedgerError as e:
        logger.debug(f"Command {args.command} failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
