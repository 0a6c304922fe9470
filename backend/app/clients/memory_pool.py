"""In-memory liquidity pool simulator.

Used for local development, tests and the price replay backtest. Each
harvest pays a flat ``fee_rate`` per position, removal requires the caller
to name the position's exact bins, and any call can be made to fail through
``fail_next``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from core.errors import PoolAdapterError
from core.models import Bins

from app.clients.pool_adapter import LiquidityResult

logger = logging.getLogger(__name__)

DEFAULT_FEE_RATE = 100


@dataclass
class SimulatedPosition:
    """Liquidity held by one position."""

    bins: Bins
    liquidity: int = 0
    fees: int = 0  # Fees claimed so far


@dataclass
class InMemoryPool:
    """PoolAdapter implementation backed by a dict of positions."""

    fee_rate: int = DEFAULT_FEE_RATE
    positions: dict[str, SimulatedPosition] = field(default_factory=dict)
    claimed: dict[str, int] = field(default_factory=dict)  # fee_token_account -> total
    _failures: dict[str, str] = field(default_factory=dict)

    def set_fee_rate(self, fee_rate: int) -> None:
        self.fee_rate = fee_rate

    def fail_next(self, method: str, reason: str = "injected failure") -> None:
        """Make the next call to ``method`` raise PoolAdapterError."""
        self._failures[method] = reason

    def _maybe_fail(self, method: str) -> None:
        reason = self._failures.pop(method, None)
        if reason is not None:
            raise PoolAdapterError(f"{method}: {reason}")

    async def add_liquidity(self, position: str, amount: int, bins: Bins) -> LiquidityResult:
        self._maybe_fail("add_liquidity")
        if amount <= 0:
            raise PoolAdapterError(f"add_liquidity: amount must be positive, got {amount}")

        # A deposit replaces the position's range and liquidity
        self.positions[position] = SimulatedPosition(bins=tuple(bins), liquidity=amount)
        logger.debug(f"Pool: {position} added {amount} into {list(bins)}")
        return LiquidityResult(
            liquidity=amount,
            position_liquidity=amount,
            token_a_amount=amount // 2,
            token_b_amount=amount - amount // 2,
        )

    async def remove_liquidity(
        self, position: str, bins: Bins, amount: int | None = None
    ) -> LiquidityResult:
        self._maybe_fail("remove_liquidity")
        pos = self.positions.get(position)
        if pos is None:
            raise PoolAdapterError(f"remove_liquidity: Position not found: {position}")
        if tuple(bins) != pos.bins:
            raise PoolAdapterError(
                f"remove_liquidity: Bin mismatch: {list(bins)} != {list(pos.bins)}"
            )

        removed = pos.liquidity if amount is None else amount
        if removed < 0 or removed > pos.liquidity:
            raise PoolAdapterError(
                f"remove_liquidity: cannot remove {removed} of {pos.liquidity}"
            )

        pos.liquidity -= removed
        logger.debug(f"Pool: {position} removed {removed} from {list(bins)}")
        return LiquidityResult(
            liquidity=removed,
            position_liquidity=pos.liquidity,
            token_a_amount=removed // 2,
            token_b_amount=removed - removed // 2,
        )

    async def quote_fees(self, position: str) -> int:
        self._maybe_fail("quote_fees")
        return self.fee_rate

    async def harvest_fee(self, position: str, fee_token_account: str) -> int:
        self._maybe_fail("harvest_fee")
        fee_amount = self.fee_rate
        pos = self.positions.get(position)
        if pos is not None:
            pos.fees += fee_amount
        self.claimed[fee_token_account] = self.claimed.get(fee_token_account, 0) + fee_amount
        return fee_amount

    async def get_position_liquidity(self, position: str) -> int:
        self._maybe_fail("get_position_liquidity")
        pos = self.positions.get(position)
        return pos.liquidity if pos else 0

    async def close(self) -> None:
        pass
