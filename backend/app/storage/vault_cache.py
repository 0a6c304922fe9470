"""Vault cache for fast startup and cross-process reads.

Data structure:
- vault:{key} -> packed vault account (146 bytes, see core.layout)
- vaults -> Set of all cached vault keys
"""

from __future__ import annotations

import logging

from core.layout import pack_vault, unpack_vault

from app.models import VaultState
from app.storage import cache

logger = logging.getLogger(__name__)


def _vault_key(vault_key: str) -> str:
    """Get the cache key for a vault."""
    return f"{cache.KEY_PREFIX_VAULT}{vault_key}"


async def cache_vault(state: VaultState) -> bool:
    """Store the committed state of a vault.

    Returns:
        True if cached successfully
    """
    if not cache.is_cache_available():
        return False

    try:
        data = pack_vault(state)
    except ValueError as e:
        logger.warning(f"Vault {state.vault_key} not cacheable: {e}")
        return False

    return await cache.put_indexed(
        cache.KEY_VAULT_INDEX, state.vault_key, _vault_key(state.vault_key), data
    )


async def get_vault(vault_key: str) -> VaultState | None:
    """Load one vault from cache, None if missing or undecodable."""
    if not cache.is_cache_available():
        return None

    data = await cache.get(_vault_key(vault_key))
    if data is None:
        return None

    try:
        return unpack_vault(data, vault_key)
    except ValueError as e:
        logger.warning(f"Failed to decode cached vault {vault_key}: {e}")
        return None


async def get_all_vaults() -> list[VaultState]:
    """Load every indexed vault from cache.

    Entries that are missing or undecodable are skipped.
    """
    if not cache.is_cache_available():
        return []

    keys = sorted(await cache.smembers(cache.KEY_VAULT_INDEX))
    if not keys:
        return []

    values = await cache.mget([_vault_key(k) for k in keys])
    vaults = []
    for key, data in zip(keys, values):
        if data is None:
            continue
        try:
            vaults.append(unpack_vault(data, key))
        except ValueError as e:
            logger.warning(f"Failed to decode cached vault {key}: {e}")
    return vaults


async def remove_vault(vault_key: str) -> bool:
    """Drop a vault and its index entry. True if the record existed."""
    if not cache.is_cache_available():
        return False

    return await cache.drop_indexed(cache.KEY_VAULT_INDEX, vault_key, _vault_key(vault_key))
