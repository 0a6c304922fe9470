"""Counters collected while replaying a price series through a vault."""

from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field

from core.models import Bins


@dataclass
class RebalanceRecord:
    timestamp: int
    price: float
    old_bins: Bins
    new_bins: Bins


@dataclass
class SimulationResult:
    """Outcome of one replay run."""

    prices_file: str = ""
    threshold: int = 0
    min_rebalance_delay: int = 0
    max_fee_amount: int = 0

    samples: int = 0
    start_time: int = 0
    end_time: int = 0
    first_price: float = 0.0
    last_price: float = 0.0

    prices_recorded: int = 0
    price_rejections: Counter = field(default_factory=Counter)
    candidates_staged: int = 0

    rebalances: list[RebalanceRecord] = field(default_factory=list)
    rebalance_rejections: Counter = field(default_factory=Counter)

    harvests: int = 0
    fees_harvested: int = 0
    harvest_rejections: Counter = field(default_factory=Counter)

    deposit_rejections: Counter = field(default_factory=Counter)
    initial_bins: Bins = (0, 0)
    final_bins: Bins = (0, 0)
    final_pending_bins: Bins = (0, 0)
    final_liquidity: int = 0

    @property
    def rebalances_committed(self) -> int:
        return len(self.rebalances)

    @property
    def rebalances_rejected(self) -> int:
        return sum(self.rebalance_rejections.values())

    @property
    def duration_seconds(self) -> int:
        return self.end_time - self.start_time

    @property
    def price_change_pct(self) -> float:
        if self.first_price == 0:
            return 0.0
        return (self.last_price - self.first_price) / self.first_price * 100.0
