"""Write-through vault persistence: PostgreSQL as the source of truth, Redis in front."""

from __future__ import annotations

import logging

from app.models import VaultState
from app.storage import vault_cache
from app.storage.vault_repo import VaultRepository

logger = logging.getLogger(__name__)


class VaultStore:
    """
    Persistence hook for the vault registry.

    ``save`` is called by the registry before a commit: a database failure
    propagates and aborts the commit, a cache failure only logs.
    """

    def __init__(
        self,
        repo: VaultRepository | None = None,
        persistence_enabled: bool = True,
    ):
        self.repo = repo or VaultRepository()
        self.persistence_enabled = persistence_enabled

    async def save(self, state: VaultState) -> None:
        if self.persistence_enabled:
            await self.repo.save(state)
        await vault_cache.cache_vault(state)

    async def load_all(self) -> list[VaultState]:
        """Load every vault committed before the last shutdown.

        With persistence enabled the database is authoritative: the cache may
        be missing vaults it cannot encode or hold versions from failed
        writes, so it is only rewarmed from what the database returns.
        Without persistence the cache is all there is.
        """
        if not self.persistence_enabled:
            cached = await vault_cache.get_all_vaults()
            logger.info(f"Loaded {len(cached)} vaults from cache (persistence disabled)")
            return cached

        vaults = await self.repo.get_all()
        logger.info(f"Loaded {len(vaults)} vaults from database")

        warmed = 0
        for state in vaults:
            if await vault_cache.cache_vault(state):
                warmed += 1
        if warmed < len(vaults):
            logger.info(f"Cache warmed with {warmed}/{len(vaults)} vaults")
        return vaults
