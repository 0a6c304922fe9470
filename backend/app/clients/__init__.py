"""Liquidity pool clients."""

from app.clients.pool_adapter import LiquidityResult, PoolAdapter
from app.clients.memory_pool import InMemoryPool, SimulatedPosition
from app.clients.dlmm_rest import DlmmRestClient, RateLimiter

__all__ = [
    "LiquidityResult",
    "PoolAdapter",
    "InMemoryPool",
    "SimulatedPosition",
    "DlmmRestClient",
    "RateLimiter",
]
