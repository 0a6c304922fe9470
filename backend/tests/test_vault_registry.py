"""Tests for the vault registry transaction discipline."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from core.errors import (
    InvalidBins,
    StalePrice,
    Unauthorized,
    VaultAlreadyExists,
    VaultNotFound,
)
from core.models import VaultState

from app.services import VaultRegistry


def make_state(key="v1", admin="admin", **overrides) -> VaultState:
    return VaultState(
        vault_key=key,
        admin=admin,
        fee_token_account="fees",
        rebalance_threshold=5,
        max_fee_amount=10_000,
        min_rebalance_delay=3600,
        **overrides,
    )


class TestVaultRegistry:
    @pytest.fixture
    def save(self):
        return AsyncMock()

    @pytest.fixture
    def registry(self, save):
        return VaultRegistry(save_vault=save)

    @pytest.mark.asyncio
    async def test_create_and_get(self, registry, save):
        state = make_state()
        await registry.create(state)

        assert registry.get("v1") == state
        assert registry.exists("v1")
        assert registry.count == 1
        save.assert_awaited_once_with(state)

    @pytest.mark.asyncio
    async def test_create_twice_rejected(self, registry):
        await registry.create(make_state())
        with pytest.raises(VaultAlreadyExists):
            await registry.create(make_state(admin="other"))
        assert registry.get("v1").admin == "admin"

    @pytest.mark.asyncio
    async def test_get_missing(self, registry):
        with pytest.raises(VaultNotFound):
            registry.get("missing")

    @pytest.mark.asyncio
    async def test_transaction_on_missing_vault(self, registry):
        with pytest.raises(VaultNotFound):
            async with registry.transaction("missing", "admin"):
                pass

    @pytest.mark.asyncio
    async def test_list_sorted_by_key(self, registry):
        await registry.create(make_state("b"))
        await registry.create(make_state("a"))
        assert [v.vault_key for v in registry.list_vaults()] == ["a", "b"]

    @pytest.mark.asyncio
    async def test_commit_on_clean_exit(self, registry, save):
        await registry.create(make_state())
        save.reset_mock()

        async with registry.transaction("v1", "admin") as tx:
            tx.stage(tx.state.model_copy(update={"current_bins": (90, 110)}))

        assert registry.get("v1").current_bins == (90, 110)
        save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_no_change_no_save(self, registry, save):
        await registry.create(make_state())
        save.reset_mock()

        async with registry.transaction("v1", "admin"):
            pass

        save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_unauthorized_before_body_runs(self, registry):
        await registry.create(make_state())
        body_ran = False

        with pytest.raises(Unauthorized):
            async with registry.transaction("v1", "intruder"):
                body_ran = True

        assert body_ran is False

    @pytest.mark.asyncio
    async def test_error_in_body_aborts(self, registry, save):
        original = make_state()
        await registry.create(original)
        save.reset_mock()

        with pytest.raises(StalePrice):
            async with registry.transaction("v1", "admin") as tx:
                tx.stage(tx.state.model_copy(update={"current_bins": (90, 110)}))
                raise StalePrice("test")

        assert registry.get("v1") == original
        save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_invariant_violation_aborts(self, registry):
        original = make_state()
        await registry.create(original)

        with pytest.raises(InvalidBins):
            async with registry.transaction("v1", "admin") as tx:
                tx.stage(tx.state.model_copy(update={"current_bins": (110, 90)}))

        assert registry.get("v1") == original

    @pytest.mark.asyncio
    async def test_save_failure_aborts(self, registry, save):
        original = make_state()
        await registry.create(original)
        save.side_effect = RuntimeError("db down")

        with pytest.raises(RuntimeError):
            async with registry.transaction("v1", "admin") as tx:
                tx.stage(tx.state.model_copy(update={"current_bins": (90, 110)}))

        assert registry.get("v1") == original

    @pytest.mark.asyncio
    async def test_failed_commit_runs_compensations_in_reverse(self, registry, save):
        await registry.create(make_state())
        save.side_effect = RuntimeError("db down")
        calls = []
        first = AsyncMock(side_effect=lambda: calls.append("first"))
        second = AsyncMock(side_effect=RuntimeError("pool down"))
        third = AsyncMock(side_effect=lambda: calls.append("third"))

        with pytest.raises(RuntimeError, match="db down"):
            async with registry.transaction("v1", "admin") as tx:
                tx.on_abort(first)
                tx.on_abort(second)
                tx.on_abort(third)
                tx.stage(tx.state.model_copy(update={"current_bins": (90, 110)}))

        assert calls == ["third", "first"]
        second.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_compensations_skipped_on_commit(self, registry):
        await registry.create(make_state())
        undo = AsyncMock()

        async with registry.transaction("v1", "admin") as tx:
            tx.on_abort(undo)
            tx.stage(tx.state.model_copy(update={"current_bins": (90, 110)}))

        undo.assert_not_awaited()
        assert registry.get("v1").current_bins == (90, 110)

    @pytest.mark.asyncio
    async def test_stage_other_vault_rejected(self, registry):
        await registry.create(make_state())
        with pytest.raises(ValueError):
            async with registry.transaction("v1", "admin") as tx:
                tx.stage(make_state("v2"))

    @pytest.mark.asyncio
    async def test_operations_on_one_vault_serialized(self, registry):
        await registry.create(make_state())
        order = []

        async def op(name, delay):
            async with registry.transaction("v1", "admin"):
                order.append(f"{name}-start")
                await asyncio.sleep(delay)
                order.append(f"{name}-end")

        await asyncio.gather(op("a", 0.02), op("b", 0))
        assert order == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_load_checks_invariants(self, registry):
        with pytest.raises(InvalidBins):
            await registry.load([make_state(current_bins=(5, 1))])

    @pytest.mark.asyncio
    async def test_load_does_not_save(self, registry, save):
        count = await registry.load([make_state("a"), make_state("b")])
        assert count == 2
        save.assert_not_awaited()
        assert registry.exists("a") and registry.exists("b")
