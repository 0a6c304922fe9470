"""Liquidity pool adapter protocol.

This module provides:
- LiquidityResult: Standard return type from add/remove liquidity calls
- PoolAdapter: Runtime-checkable Protocol that pool clients must satisfy

Positions are addressed by an opaque position id; the vault services use the
vault key. Implementations raise ``PoolAdapterError`` on any failure.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from core.models import Bins


@dataclass(frozen=True)
class LiquidityResult:
    """Result of an add or remove liquidity call.

    Attributes:
        liquidity: Liquidity added or removed by this call.
        position_liquidity: Liquidity left in the position afterwards.
        token_a_amount: Token A moved by this call.
        token_b_amount: Token B moved by this call.
    """

    liquidity: int
    position_liquidity: int
    token_a_amount: int = 0
    token_b_amount: int = 0


@runtime_checkable
class PoolAdapter(Protocol):
    """Protocol for the concentrated-liquidity pool the vault manages."""

    async def add_liquidity(self, position: str, amount: int, bins: Bins) -> LiquidityResult:
        """Deposit ``amount`` into ``bins`` for ``position``."""
        ...

    async def remove_liquidity(
        self, position: str, bins: Bins, amount: int | None = None
    ) -> LiquidityResult:
        """Remove ``amount`` liquidity (all when None) from ``bins``."""
        ...

    async def quote_fees(self, position: str) -> int:
        """Fees claimable by ``position`` right now, without claiming."""
        ...

    async def harvest_fee(self, position: str, fee_token_account: str) -> int:
        """Claim accrued fees into ``fee_token_account``; return the amount."""
        ...

    async def get_position_liquidity(self, position: str) -> int:
        """Current liquidity of ``position`` (0 if unknown)."""
        ...

    async def close(self) -> None:
        """Release any connections held by the adapter."""
        ...
