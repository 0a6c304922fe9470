"""Rebalance executor: moves liquidity from the current range to the staged one."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.constants import EMPTY_BINS, STALENESS_WINDOW_SECONDS
from core.errors import InvalidParameter, PoolAdapterError
from core.models import Bins, VaultState
from core.transitions import apply_rebalance, check_rebalance

from app.clients.pool_adapter import LiquidityResult, PoolAdapter
from app.services.vault_registry import Clock, VaultRegistry, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RebalanceResult:
    """Committed rebalance."""

    state: VaultState
    old_bins: Bins
    new_bins: Bins
    withdrawn: LiquidityResult | None
    deposited: LiquidityResult


class RebalanceExecutor:
    """
    Commit a staged rebalance candidate.

    Guard order: candidate present, candidate well-formed, minimum delay
    since the last rebalance, fresh price. Then the pool is asked to
    withdraw everything from the current range and deposit into the new
    one. VaultState changes only if both calls succeed.
    """

    def __init__(
        self,
        registry: VaultRegistry,
        pool: PoolAdapter,
        staleness_window: int = STALENESS_WINDOW_SECONDS,
        clock: Clock = system_clock,
    ):
        self.registry = registry
        self.pool = pool
        self.staleness_window = staleness_window
        self._clock = clock

    async def rebalance(
        self,
        vault_key: str,
        caller: str,
        token_amount: int,
        current_time: int | None = None,
    ) -> RebalanceResult:
        """Move the vault's liquidity into its staged bins.

        Args:
            vault_key: Vault to rebalance.
            caller: Identity invoking the operation (must be the admin).
            token_amount: Amount to deposit into the new range.
            current_time: Unix seconds; defaults to the clock.
        """
        now = self._clock() if current_time is None else current_time

        async with self.registry.transaction(vault_key, caller, "rebalance") as tx:
            state = tx.state
            new_bins = check_rebalance(state, now, self.staleness_window)
            if token_amount <= 0:
                raise InvalidParameter(f"token_amount={token_amount}")

            old_bins = state.current_bins

            # Nothing to withdraw before the first deposit
            withdrawn = None
            if old_bins != EMPTY_BINS:
                withdrawn = await self.pool.remove_liquidity(vault_key, old_bins)

            try:
                deposited = await self.pool.add_liquidity(vault_key, token_amount, new_bins)
            except PoolAdapterError:
                await self._restore(vault_key, old_bins, withdrawn)
                raise

            tx.on_abort(lambda: self._unwind(vault_key, old_bins, new_bins, withdrawn))
            tx.stage(apply_rebalance(state, now))

        logger.info(
            f"Vault {vault_key}: rebalanced {list(old_bins)} -> {list(new_bins)} "
            f"(withdrew {withdrawn.liquidity if withdrawn else 0}, deposited {deposited.liquidity})"
        )
        return RebalanceResult(
            state=tx.state,
            old_bins=old_bins,
            new_bins=new_bins,
            withdrawn=withdrawn,
            deposited=deposited,
        )

    async def _unwind(
        self,
        vault_key: str,
        old_bins: Bins,
        new_bins: Bins,
        withdrawn: LiquidityResult | None,
    ) -> None:
        """Move liquidity back to the committed range after a failed commit."""
        await self.pool.remove_liquidity(vault_key, new_bins)
        await self._restore(vault_key, old_bins, withdrawn)
        logger.warning(
            f"Vault {vault_key}: rebalance not committed, liquidity moved back from "
            f"{list(new_bins)} to {list(old_bins)}"
        )

    async def _restore(
        self,
        vault_key: str,
        old_bins: Bins,
        withdrawn: LiquidityResult | None,
    ) -> None:
        """Best-effort re-deposit of liquidity withdrawn by an uncommitted rebalance."""
        if withdrawn is None or withdrawn.liquidity <= 0:
            return

        try:
            await self.pool.add_liquidity(vault_key, withdrawn.liquidity, old_bins)
            logger.warning(f"Vault {vault_key}: restored {withdrawn.liquidity} into {list(old_bins)}")
        except PoolAdapterError as e:
            logger.error(
                f"Vault {vault_key}: restore into {list(old_bins)} failed, "
                f"{withdrawn.liquidity} liquidity left withdrawn: {e}"
            )
