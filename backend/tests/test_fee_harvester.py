"""Tests for fee harvesting and the fee cap."""

from unittest.mock import AsyncMock, patch

import pytest

from core.constants import U64_MAX
from core.errors import FeeOverflow, MaxFeeExceeded, PoolAdapterError, Unauthorized
from core.models import VaultConfig

from conftest import ADMIN, FEE_ACCOUNT, OTHER


class TestFeeHarvester:
    @pytest.mark.asyncio
    async def test_harvest_accrues_fees(self, manager, vault, pool, clock):
        result = await manager.harvest_fees(vault.vault_key, ADMIN)

        assert result.fee_amount == 100
        assert result.state.total_fees_earned == 100
        assert result.state.last_fee_harvest_time == clock.now
        assert pool.claimed[FEE_ACCOUNT] == 100

    @pytest.mark.asyncio
    async def test_repeated_harvests_until_cap(self, manager, vault, pool):
        pool.set_fee_rate(2_500)
        for _ in range(4):
            await manager.harvest_fees(vault.vault_key, ADMIN)
        assert manager.get_vault(vault.vault_key).total_fees_earned == 10_000

        with pytest.raises(MaxFeeExceeded):
            await manager.harvest_fees(vault.vault_key, ADMIN)

        assert manager.get_vault(vault.vault_key).total_fees_earned == 10_000
        # Rejected before the claim, so nothing moved
        assert pool.claimed[FEE_ACCOUNT] == 10_000

    @pytest.mark.asyncio
    async def test_cap_exceeded_leaves_totals(self, manager, vault, pool):
        pool.set_fee_rate(9_950)
        await manager.harvest_fees(vault.vault_key, ADMIN)
        before = manager.get_vault(vault.vault_key)
        pool.set_fee_rate(100)

        with pytest.raises(MaxFeeExceeded):
            await manager.harvest_fees(vault.vault_key, ADMIN)

        assert manager.get_vault(vault.vault_key) == before

    @pytest.mark.asyncio
    async def test_overflow(self, manager, pool):
        config = VaultConfig(
            fee_token_account=FEE_ACCOUNT,
            rebalance_threshold=5,
            max_fee_amount=U64_MAX,
            min_rebalance_delay=3600,
        )
        await manager.initialize(ADMIN, config)
        pool.set_fee_rate(U64_MAX)
        await manager.harvest_fees(ADMIN, ADMIN)

        pool.set_fee_rate(1)
        with pytest.raises(FeeOverflow):
            await manager.harvest_fees(ADMIN, ADMIN)
        assert manager.get_vault(ADMIN).total_fees_earned == U64_MAX

    @pytest.mark.asyncio
    async def test_claim_above_quote_aborts_accounting(self, manager, vault, pool):
        pool.set_fee_rate(9_900)
        await manager.harvest_fees(vault.vault_key, ADMIN)
        before = manager.get_vault(vault.vault_key)

        # Quote fits under the cap, the actual claim does not
        with patch.object(pool, "quote_fees", new_callable=AsyncMock, return_value=50):
            with patch.object(pool, "harvest_fee", new_callable=AsyncMock, return_value=500):
                with pytest.raises(MaxFeeExceeded):
                    await manager.harvest_fees(vault.vault_key, ADMIN)

        assert manager.get_vault(vault.vault_key) == before

    @pytest.mark.asyncio
    async def test_claim_failure(self, manager, vault, pool):
        pool.fail_next("harvest_fee")
        with pytest.raises(PoolAdapterError):
            await manager.harvest_fees(vault.vault_key, ADMIN)
        assert manager.get_vault(vault.vault_key).total_fees_earned == 0

    @pytest.mark.asyncio
    async def test_non_admin_rejected(self, manager, vault, pool):
        with pytest.raises(Unauthorized):
            await manager.harvest_fees(vault.vault_key, OTHER)
        assert FEE_ACCOUNT not in pool.claimed
