"""CLI entry point for the price replay.

Usage:
    python -m backtest --prices prices.csv
    python -m backtest --prices prices.csv --threshold 3 --delay 600 --json out.json
"""

import argparse
import asyncio
import logging
import sys

from core.errors import VaultError

from backtest.engine import SimulationConfig, SimulationEngine
from backtest.price_source import read_price_csv
from backtest.report import ReportFormatter


def positive_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid integer: {value}")
    if number <= 0:
        raise argparse.ArgumentTypeError(f"Must be positive: {value}")
    return number


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    defaults = SimulationConfig()
    parser = argparse.ArgumentParser(
        description="Replay a price series through a DLMM vault",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
CSV format (header required):
  timestamp,price
  1700000000,100.0
  1700000010,101.5

Examples:
  python -m backtest --prices prices.csv
  python -m backtest --prices prices.csv --threshold 3 --delay 600 --json out.json
        """,
    )
    parser.add_argument(
        "--prices",
        type=str,
        required=True,
        help="CSV file with timestamp,price rows",
    )
    parser.add_argument(
        "--threshold",
        type=positive_int,
        default=defaults.threshold,
        help=f"Rebalance threshold in percent, 1-100 (default: {defaults.threshold})",
    )
    parser.add_argument(
        "--delay",
        type=positive_int,
        default=defaults.min_rebalance_delay,
        help=f"Minimum seconds between rebalances (default: {defaults.min_rebalance_delay})",
    )
    parser.add_argument(
        "--max-fee",
        type=int,
        default=defaults.max_fee_amount,
        help=f"Cumulative fee cap (default: {defaults.max_fee_amount})",
    )
    parser.add_argument(
        "--deposit",
        type=positive_int,
        default=defaults.deposit,
        help=f"Opening deposit amount (default: {defaults.deposit})",
    )
    parser.add_argument(
        "--fee-rate",
        type=int,
        default=defaults.fee_rate,
        help=f"Fees paid by the simulated pool per harvest (default: {defaults.fee_rate})",
    )
    parser.add_argument(
        "--harvest-interval",
        type=positive_int,
        default=defaults.harvest_interval,
        help=f"Seconds between harvest attempts (default: {defaults.harvest_interval})",
    )
    parser.add_argument(
        "--staleness",
        type=positive_int,
        default=defaults.staleness_window,
        help=f"Price staleness window in seconds (default: {defaults.staleness_window})",
    )
    parser.add_argument(
        "--json",
        type=str,
        default=None,
        help="Output file path for JSON results",
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Log every vault operation",
    )
    return parser.parse_args(argv)


async def main(argv: list[str] | None = None) -> None:
    args = parse_args(argv)

    # Configure logging
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%H:%M:%S",
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)
    if not args.verbose:
        # Guard rejections are expected during a replay
        logging.getLogger("app").setLevel(logging.ERROR)

    try:
        samples = read_price_csv(args.prices)
    except (OSError, ValueError) as e:
        print(f"Error: {e}")
        sys.exit(1)

    config = SimulationConfig(
        threshold=args.threshold,
        min_rebalance_delay=args.delay,
        max_fee_amount=args.max_fee,
        deposit=args.deposit,
        fee_rate=args.fee_rate,
        harvest_interval=args.harvest_interval,
        staleness_window=args.staleness,
    )

    print(f"\nReplaying {len(samples)} samples from {args.prices}")
    engine = SimulationEngine(config)
    try:
        result = await engine.run(samples, prices_file=args.prices)
    except VaultError as e:
        # Setup (initialize or opening deposit) was rejected
        print(f"Error: {e.kind}: {e}")
        sys.exit(1)

    ReportFormatter.print_console(result)

    if args.json:
        ReportFormatter.save_json(result, args.json)


if __name__ == "__main__":
    asyncio.run(main())
