"""Report formatting for replay results.

Outputs results to console (formatted tables) and JSON files.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from backtest.stats import SimulationResult


def _fmt_time(ts: int) -> str:
    return datetime.fromtimestamp(ts, tz=timezone.utc).strftime("%Y-%m-%d %H:%M:%S")


class ReportFormatter:
    """Format replay results for display and export."""

    @staticmethod
    def print_console(result: SimulationResult) -> None:
        """Print formatted report to console."""
        print("\n" + "=" * 70)
        print("  REPLAY RESULTS - DLMM Vault")
        print("=" * 70)
        if result.prices_file:
            print(f"  Prices: {result.prices_file}")
        print(
            f"  Threshold: {result.threshold}%  "
            f"Min delay: {result.min_rebalance_delay}s  "
            f"Max fee: {result.max_fee_amount}"
        )
        if result.samples:
            print(f"  Period: {_fmt_time(result.start_time)} -> {_fmt_time(result.end_time)}")
            print(
                f"  Price: {result.first_price:g} -> {result.last_price:g} "
                f"({result.price_change_pct:+.2f}%)"
            )

        print("\n" + "-" * 70)
        print("  PRICES")
        print("-" * 70)
        print(f"  Samples:            {result.samples}")
        print(f"  Recorded:           {result.prices_recorded}")
        print(f"  Candidates staged:  {result.candidates_staged}")
        for kind, count in sorted(result.price_rejections.items()):
            print(f"  Rejected {kind + ':':<18} {count}")

        print("\n" + "-" * 70)
        print("  REBALANCES")
        print("-" * 70)
        print(f"  Committed:          {result.rebalances_committed}")
        print(f"  Rejected:           {result.rebalances_rejected}")
        for kind, count in sorted(result.rebalance_rejections.items()):
            print(f"    {kind:<22} {count}")

        if result.rebalances:
            print(f"\n  {'Time':<20} {'Price':>12} {'Old bins':>18} {'New bins':>18}")
            for r in result.rebalances[-10:]:
                print(
                    f"  {_fmt_time(r.timestamp):<20} {r.price:>12g} "
                    f"{str(list(r.old_bins)):>18} {str(list(r.new_bins)):>18}"
                )

        print("\n" + "-" * 70)
        print("  FEES")
        print("-" * 70)
        print(f"  Harvests:           {result.harvests}")
        print(f"  Fees harvested:     {result.fees_harvested} / {result.max_fee_amount}")
        for kind, count in sorted(result.harvest_rejections.items()):
            print(f"  Rejected {kind + ':':<18} {count}")

        print("\n" + "-" * 70)
        print("  FINAL POSITION")
        print("-" * 70)
        print(f"  Initial bins:       {list(result.initial_bins)}")
        for kind, count in sorted(result.deposit_rejections.items()):
            print(f"  Opening deposit rejected: {kind} ({count})")
        print(f"  Final bins:         {list(result.final_bins)}")
        print(f"  Pending bins:       {list(result.final_pending_bins)}")
        print(f"  Liquidity:          {result.final_liquidity}")

        print("\n" + "=" * 70)

    @staticmethod
    def to_dict(result: SimulationResult) -> dict:
        """Convert results to JSON-serializable dict."""
        return {
            "metadata": {
                "prices_file": result.prices_file,
                "threshold": result.threshold,
                "min_rebalance_delay": result.min_rebalance_delay,
                "max_fee_amount": result.max_fee_amount,
                "start_time": result.start_time,
                "end_time": result.end_time,
            },
            "prices": {
                "samples": result.samples,
                "recorded": result.prices_recorded,
                "first": result.first_price,
                "last": result.last_price,
                "change_pct": round(result.price_change_pct, 4),
                "candidates_staged": result.candidates_staged,
                "rejections": dict(result.price_rejections),
            },
            "rebalances": {
                "committed": result.rebalances_committed,
                "rejected": result.rebalances_rejected,
                "rejections": dict(result.rebalance_rejections),
                "history": [
                    {
                        "timestamp": r.timestamp,
                        "price": r.price,
                        "old_bins": list(r.old_bins),
                        "new_bins": list(r.new_bins),
                    }
                    for r in result.rebalances
                ],
            },
            "fees": {
                "harvests": result.harvests,
                "harvested": result.fees_harvested,
                "rejections": dict(result.harvest_rejections),
            },
            "position": {
                "initial_bins": list(result.initial_bins),
                "deposit_rejections": dict(result.deposit_rejections),
                "final_bins": list(result.final_bins),
                "pending_bins": list(result.final_pending_bins),
                "liquidity": result.final_liquidity,
            },
        }

    @staticmethod
    def save_json(result: SimulationResult, filepath: str) -> None:
        """Save results to JSON file."""
        data = ReportFormatter.to_dict(result)
        with open(filepath, "w") as f:
            json.dump(data, f, indent=2)
        print(f"\nResults saved to {filepath}")
