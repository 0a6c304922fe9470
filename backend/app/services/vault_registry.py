"""Vault registry: keyed store with per-vault locking and staged commits.

Every guarded operation runs inside ``VaultRegistry.transaction``:

1. The vault's lock is acquired (one operation per vault at a time)
2. The caller is checked against the vault admin before anything else
3. The operation stages a new VaultState on the yielded ``StagedVault``
4. On clean exit the staged state is checked against the invariants,
   persisted through ``save_vault`` and swapped in
5. On any exception nothing is committed. If the commit itself fails (an
   invariant or ``save_vault``), the compensations registered with
   ``StagedVault.on_abort`` run, still under the lock, so external effects
   can be undone
"""

from __future__ import annotations

import asyncio
import logging
import time
from contextlib import asynccontextmanager
from typing import AsyncIterator, Awaitable, Callable, Iterable

from core.errors import Unauthorized, VaultAlreadyExists, VaultError, VaultNotFound
from core.models import VaultState, check_invariants

logger = logging.getLogger(__name__)

# Persistence hook, called with the state about to be committed
SaveVaultCallback = Callable[[VaultState], Awaitable[None]]

# Undoes an external effect when the commit fails
Compensation = Callable[[], Awaitable[None]]

# Clock source returning unix seconds
Clock = Callable[[], int]


def system_clock() -> int:
    """Current unix time in whole seconds."""
    return int(time.time())


class StagedVault:
    """Mutation buffer for one transaction.

    ``original`` is the committed state when the transaction started;
    ``state`` is what will be committed if the block exits cleanly.
    """

    def __init__(self, original: VaultState):
        self.original = original
        self.state = original
        self.compensations: list[Compensation] = []

    def stage(self, state: VaultState) -> None:
        if state.vault_key != self.original.vault_key:
            raise ValueError(
                f"Cannot stage vault {state.vault_key} in transaction for {self.original.vault_key}"
            )
        self.state = state

    def on_abort(self, compensation: Compensation) -> None:
        """Register a coroutine function to run if the commit fails."""
        self.compensations.append(compensation)

    @property
    def changed(self) -> bool:
        return self.state is not self.original


class VaultRegistry:
    """In-memory map of vault key to committed VaultState."""

    def __init__(self, save_vault: SaveVaultCallback | None = None):
        """
        Args:
            save_vault: Optional persistence callback run before each commit.
                A failure aborts the commit.
        """
        self._vaults: dict[str, VaultState] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._save_vault = save_vault

        # Guards creation so two initializations of one key cannot race
        self._create_lock = asyncio.Lock()

    async def load(self, vaults: Iterable[VaultState]) -> int:
        """Load previously persisted vaults (startup). Returns count loaded."""
        count = 0
        async with self._create_lock:
            for state in vaults:
                check_invariants(state)
                self._vaults[state.vault_key] = state
                self._locks.setdefault(state.vault_key, asyncio.Lock())
                count += 1
        logger.info(f"Loaded {count} vaults into registry")
        return count

    async def create(self, state: VaultState) -> VaultState:
        """Register a freshly initialized vault."""
        async with self._create_lock:
            if state.vault_key in self._vaults:
                raise VaultAlreadyExists(state.vault_key)
            check_invariants(state)
            if self._save_vault:
                await self._save_vault(state)
            self._vaults[state.vault_key] = state
            self._locks[state.vault_key] = asyncio.Lock()

        logger.info(
            f"Vault {state.vault_key} initialized: admin={state.admin} "
            f"threshold={state.rebalance_threshold}% max_fee={state.max_fee_amount} "
            f"min_delay={state.min_rebalance_delay}s"
        )
        return state

    def get(self, vault_key: str) -> VaultState:
        """Get the committed state of a vault."""
        state = self._vaults.get(vault_key)
        if state is None:
            raise VaultNotFound(vault_key)
        return state

    def exists(self, vault_key: str) -> bool:
        return vault_key in self._vaults

    def list_vaults(self) -> list[VaultState]:
        return [self._vaults[k] for k in sorted(self._vaults)]

    @asynccontextmanager
    async def transaction(
        self,
        vault_key: str,
        caller: str,
        operation: str = "operation",
    ) -> AsyncIterator[StagedVault]:
        """Run one guarded operation against ``vault_key`` atomically."""
        lock = self._locks.get(vault_key)
        if lock is None:
            raise VaultNotFound(vault_key)

        async with lock:
            current = self.get(vault_key)
            if caller != current.admin:
                logger.warning(f"Vault {vault_key}: {operation} rejected, caller {caller} is not admin")
                raise Unauthorized(f"{caller} on {vault_key}")

            staged = StagedVault(current)
            try:
                yield staged
            except VaultError as e:
                logger.warning(f"Vault {vault_key}: {operation} aborted: {e}")
                raise

            if not staged.changed:
                return

            try:
                check_invariants(staged.state, previous=current)
                if self._save_vault:
                    await self._save_vault(staged.state)
            except Exception as e:
                logger.error(f"Vault {vault_key}: {operation} not committed: {e!r}")
                await self._compensate(vault_key, operation, staged)
                raise
            self._vaults[vault_key] = staged.state

    async def _compensate(self, vault_key: str, operation: str, staged: StagedVault) -> None:
        for compensation in reversed(staged.compensations):
            try:
                await compensation()
            except Exception as e:
                logger.error(
                    f"Vault {vault_key}: undoing {operation} failed, pool and vault state diverge: {e!r}"
                )

    @property
    def count(self) -> int:
        return len(self._vaults)
