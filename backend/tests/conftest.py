"""Shared fixtures for vault service tests."""

import pytest
import pytest_asyncio

from core.models import VaultConfig

from app.clients import InMemoryPool
from app.services import VaultManager

ADMIN = "admin-wallet"
OTHER = "someone-else"
FEE_ACCOUNT = "fee-account"


class FakeClock:
    """Settable clock returning unix seconds."""

    def __init__(self, now: int = 1_700_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> int:
        self.now += seconds
        return self.now


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def pool():
    return InMemoryPool(fee_rate=100)


@pytest.fixture
def vault_config():
    return VaultConfig(
        fee_token_account=FEE_ACCOUNT,
        rebalance_threshold=5,
        max_fee_amount=10_000,
        min_rebalance_delay=3600,
    )


@pytest.fixture
def manager(pool, clock):
    return VaultManager(pool=pool, clock=clock)


@pytest_asyncio.fixture
async def vault(manager, vault_config):
    """An initialized vault with no deposit and no price yet."""
    return await manager.initialize(ADMIN, vault_config)
