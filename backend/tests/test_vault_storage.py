"""Tests for the vault cache and the write-through store."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from core.layout import pack_vault
from core.models import VaultState

from app.storage import VaultStore, vault_cache
from app.storage.vault_repo import _row_to_state, _row_values


@pytest.fixture
def state():
    return VaultState(
        vault_key="v1",
        admin="admin",
        current_bins=(90, 110),
        fee_token_account="fees",
        rebalance_threshold=5,
        max_fee_amount=10_000,
        min_rebalance_delay=3600,
        total_fees_earned=200,
        last_price=101.5,
        price_update_time=1_700_000_000,
    )


class TestVaultCache:
    @pytest.mark.asyncio
    async def test_cache_vault_stores_packed_account(self, state):
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'put_indexed', new_callable=AsyncMock, return_value=True) as mock_put:
                result = await vault_cache.cache_vault(state)

                assert result is True
                mock_put.assert_called_once_with("vaults", "v1", "vault:v1", pack_vault(state))

    @pytest.mark.asyncio
    async def test_cache_unavailable(self, state):
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=False):
            assert await vault_cache.cache_vault(state) is False
            assert await vault_cache.get_vault("v1") is None
            assert await vault_cache.get_all_vaults() == []

    @pytest.mark.asyncio
    async def test_uncacheable_identity_skipped(self, state):
        long_admin = state.model_copy(update={"admin": "x" * 40})
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'put_indexed', new_callable=AsyncMock) as mock_put:
                assert await vault_cache.cache_vault(long_admin) is False
                mock_put.assert_not_called()

    @pytest.mark.asyncio
    async def test_get_vault(self, state):
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'get', new_callable=AsyncMock, return_value=pack_vault(state)):
                assert await vault_cache.get_vault("v1") == state

    @pytest.mark.asyncio
    async def test_get_vault_corrupt_entry(self):
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'get', new_callable=AsyncMock, return_value=b"junk"):
                assert await vault_cache.get_vault("v1") is None

    @pytest.mark.asyncio
    async def test_get_all_skips_missing_and_corrupt(self, state):
        other = state.model_copy(update={"vault_key": "v3"})
        values = [pack_vault(state), None, b"junk", pack_vault(other)]
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'smembers', new_callable=AsyncMock, return_value={"v1", "v2", "v2b", "v3"}):
                with patch.object(vault_cache.cache, 'mget', new_callable=AsyncMock, return_value=values) as mock_mget:
                    vaults = await vault_cache.get_all_vaults()

                    mock_mget.assert_called_once_with(["vault:v1", "vault:v2", "vault:v2b", "vault:v3"])
                    assert [v.vault_key for v in vaults] == ["v1", "v3"]

    @pytest.mark.asyncio
    async def test_remove_vault(self):
        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True):
            with patch.object(vault_cache.cache, 'drop_indexed', new_callable=AsyncMock, return_value=True) as mock_drop:
                assert await vault_cache.remove_vault("v1") is True
                mock_drop.assert_called_once_with("vaults", "v1", "vault:v1")


class TestCacheDisconnected:
    @pytest.mark.asyncio
    async def test_operations_are_no_ops(self):
        with patch.object(vault_cache.cache, '_client', None):
            assert await vault_cache.cache.get("vault:v1") is None
            assert await vault_cache.cache.mget(["a", "b"]) == [None, None]
            assert await vault_cache.cache.put_indexed("vaults", "v1", "vault:v1", b"x") is False
            assert await vault_cache.cache.drop_indexed("vaults", "v1", "vault:v1") is False
            assert await vault_cache.cache.smembers("vaults") == set()
            assert await vault_cache.cache.get_info() == {"status": "disconnected"}


class TestVaultStore:
    @pytest.fixture
    def repo(self):
        repo = MagicMock()
        repo.save = AsyncMock()
        repo.get_all = AsyncMock(return_value=[])
        return repo

    @pytest.mark.asyncio
    async def test_save_writes_db_then_cache(self, repo, state):
        store = VaultStore(repo=repo)
        with patch.object(vault_cache, 'cache_vault', new_callable=AsyncMock) as mock_cache:
            await store.save(state)

            repo.save.assert_awaited_once_with(state)
            mock_cache.assert_awaited_once_with(state)

    @pytest.mark.asyncio
    async def test_db_failure_propagates(self, repo, state):
        repo.save.side_effect = RuntimeError("db down")
        store = VaultStore(repo=repo)
        with patch.object(vault_cache, 'cache_vault', new_callable=AsyncMock) as mock_cache:
            with pytest.raises(RuntimeError):
                await store.save(state)
            mock_cache.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persistence_disabled_skips_db(self, repo, state):
        store = VaultStore(repo=repo, persistence_enabled=False)
        with patch.object(vault_cache, 'cache_vault', new_callable=AsyncMock):
            await store.save(state)
        repo.save.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_load_reads_database_over_stale_cache(self, repo, state):
        stale = state.model_copy(update={"total_fees_earned": 100})
        fresh = state.model_copy(update={"total_fees_earned": 900})
        repo.get_all.return_value = [fresh]
        store = VaultStore(repo=repo)
        with patch.object(vault_cache, 'get_all_vaults', new_callable=AsyncMock, return_value=[stale]) as mock_get:
            with patch.object(vault_cache, 'cache_vault', new_callable=AsyncMock, return_value=True) as mock_cache:
                vaults = await store.load_all()

                assert [v.total_fees_earned for v in vaults] == [900]
                mock_get.assert_not_awaited()
                mock_cache.assert_awaited_once_with(fresh)

    @pytest.mark.asyncio
    async def test_load_keeps_vaults_the_cache_cannot_hold(self, state):
        rows: dict[str, VaultState] = {}
        cached: dict[str, bytes] = {}

        async def save_row(s):
            rows[s.vault_key] = s

        async def get_rows():
            return list(rows.values())

        async def put_indexed(index, member, key, value):
            cached[member] = value
            return True

        async def smembers(key):
            return set(cached)

        async def mget(keys):
            return [cached.get(k.removeprefix("vault:")) for k in keys]

        repo = MagicMock()
        repo.save = AsyncMock(side_effect=save_row)
        repo.get_all = AsyncMock(side_effect=get_rows)
        store = VaultStore(repo=repo)
        solana_admin = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
        wide = state.model_copy(update={"vault_key": "wide", "admin": solana_admin})

        with patch.object(vault_cache.cache, 'is_cache_available', return_value=True), \
                patch.object(vault_cache.cache, 'put_indexed', side_effect=put_indexed), \
                patch.object(vault_cache.cache, 'smembers', side_effect=smembers), \
                patch.object(vault_cache.cache, 'mget', side_effect=mget):
            await store.save(state)
            await store.save(wide)
            assert list(cached) == ["v1"]

            vaults = await store.load_all()

        assert sorted(v.vault_key for v in vaults) == ["v1", "wide"]

    @pytest.mark.asyncio
    async def test_load_from_cache_when_persistence_disabled(self, repo, state):
        store = VaultStore(repo=repo, persistence_enabled=False)
        with patch.object(vault_cache, 'get_all_vaults', new_callable=AsyncMock, return_value=[state]):
            assert await store.load_all() == [state]
        repo.get_all.assert_not_awaited()


class TestRowMapping:
    def test_row_values_to_state(self, state):
        row = MagicMock(**_row_values(state))
        assert _row_to_state(row) == state
