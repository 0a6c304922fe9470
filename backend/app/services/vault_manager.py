"""Vault manager: single entry point for every guarded vault operation."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable

from core.constants import STALENESS_WINDOW_SECONDS
from core.models import Bins, VaultConfig, VaultState
from core.transitions import apply_deposit, check_deposit, initialize_vault

from app.clients.pool_adapter import LiquidityResult, PoolAdapter
from app.models import VaultEvent, VaultEventType
from app.services.fee_harvester import FeeHarvester, HarvestResult
from app.services.price_monitor import PriceMonitor, PriceUpdate
from app.services.rebalance_executor import RebalanceExecutor, RebalanceResult
from app.services.vault_registry import Clock, SaveVaultCallback, VaultRegistry, system_clock
from app.services.withdrawal_manager import SettleCallback, WithdrawalManager, WithdrawalResult

logger = logging.getLogger(__name__)

# Type alias for event callback
EventCallback = Callable[[VaultEvent], Awaitable[None]]


class VaultManager:
    """
    Own the registry and the pool adapter, and route operations to the
    price monitor, rebalance executor, fee harvester and withdrawal manager.

    Callers identify themselves on every call; only a vault's admin may
    operate on it. Events are emitted only after a commit.
    """

    def __init__(
        self,
        pool: PoolAdapter,
        save_vault: SaveVaultCallback | None = None,
        settle: SettleCallback | None = None,
        staleness_window: int = STALENESS_WINDOW_SECONDS,
        clock: Clock = system_clock,
    ):
        self.pool = pool
        self.registry = VaultRegistry(save_vault=save_vault)
        self._clock = clock

        self.price_monitor = PriceMonitor(self.registry, staleness_window, clock)
        self.rebalance_executor = RebalanceExecutor(self.registry, pool, staleness_window, clock)
        self.fee_harvester = FeeHarvester(self.registry, pool, clock)
        self.withdrawal_manager = WithdrawalManager(self.registry, pool, settle)

        self._event_callbacks: list[EventCallback] = []

    # =========================================================================
    # Events
    # =========================================================================

    def on_event(self, callback: EventCallback) -> None:
        """Register callback for vault events.

        Note: Duplicate callbacks are ignored.
        """
        if callback not in self._event_callbacks:
            self._event_callbacks.append(callback)

    def off_event(self, callback: EventCallback) -> None:
        """Unregister callback for vault events."""
        if callback in self._event_callbacks:
            self._event_callbacks.remove(callback)

    async def _emit(self, event_type: VaultEventType, vault_key: str, data: dict) -> None:
        event = VaultEvent(type=event_type, vault_key=vault_key, data=data)
        for callback in self._event_callbacks:
            try:
                await callback(event)
            except Exception as e:
                logger.error(f"Event callback error ({event_type.value}): {e}")

    # =========================================================================
    # Operations
    # =========================================================================

    async def initialize(
        self,
        caller: str,
        config: VaultConfig,
        vault_key: str | None = None,
    ) -> VaultState:
        """Create a vault administered by ``caller``.

        The vault key defaults to the admin identity (one vault per admin).
        """
        key = vault_key or caller
        state = await self.registry.create(initialize_vault(key, caller, config))
        await self._emit(
            VaultEventType.INITIALIZED,
            key,
            {
                "admin": state.admin,
                "rebalance_threshold": state.rebalance_threshold,
                "max_fee_amount": state.max_fee_amount,
                "min_rebalance_delay": state.min_rebalance_delay,
            },
        )
        return state

    async def deposit(
        self,
        vault_key: str,
        caller: str,
        amount: int,
        bins: Bins,
    ) -> tuple[VaultState, LiquidityResult]:
        """Add ``amount`` liquidity into ``bins`` and make them the current range."""
        bins = tuple(bins)
        async with self.registry.transaction(vault_key, caller, "deposit") as tx:
            check_deposit(amount, bins)
            result = await self.pool.add_liquidity(vault_key, amount, bins)
            tx.stage(apply_deposit(tx.state, bins))

        logger.info(f"Vault {vault_key}: deposited {amount} into {list(bins)}")
        await self._emit(
            VaultEventType.DEPOSITED,
            vault_key,
            {"amount": amount, "bins": list(bins), "liquidity": result.position_liquidity},
        )
        return tx.state, result

    async def record_price(
        self,
        vault_key: str,
        caller: str,
        new_price: float,
        current_time: int | None = None,
    ) -> PriceUpdate:
        update = await self.price_monitor.record_price(vault_key, caller, new_price, current_time)
        await self._emit(
            VaultEventType.PRICE_RECORDED,
            vault_key,
            {
                "price": new_price,
                "time": update.state.price_update_time,
                "drift_pct": update.drift_pct,
            },
        )
        if update.staged_bins is not None:
            await self._emit(
                VaultEventType.REBALANCE_STAGED,
                vault_key,
                {"bins": list(update.staged_bins), "drift_pct": update.drift_pct},
            )
        return update

    async def rebalance(
        self,
        vault_key: str,
        caller: str,
        token_amount: int,
        current_time: int | None = None,
    ) -> RebalanceResult:
        result = await self.rebalance_executor.rebalance(
            vault_key, caller, token_amount, current_time
        )
        await self._emit(
            VaultEventType.REBALANCED,
            vault_key,
            {
                "old_bins": list(result.old_bins),
                "new_bins": list(result.new_bins),
                "time": result.state.last_rebalance_time,
                "deposited": result.deposited.liquidity,
            },
        )
        return result

    async def harvest_fees(
        self,
        vault_key: str,
        caller: str,
        current_time: int | None = None,
    ) -> HarvestResult:
        result = await self.fee_harvester.harvest_fees(vault_key, caller, current_time)
        await self._emit(
            VaultEventType.FEES_HARVESTED,
            vault_key,
            {
                "fee_amount": result.fee_amount,
                "total_fees_earned": result.state.total_fees_earned,
            },
        )
        return result

    async def withdraw(self, vault_key: str, caller: str, share: int) -> WithdrawalResult:
        result = await self.withdrawal_manager.withdraw(vault_key, caller, share)
        await self._emit(
            VaultEventType.WITHDRAWN,
            vault_key,
            {
                "share": share,
                "amount": result.amount,
                "remaining_liquidity": result.removed.position_liquidity,
            },
        )
        return result

    # =========================================================================
    # Queries
    # =========================================================================

    def get_vault(self, vault_key: str) -> VaultState:
        return self.registry.get(vault_key)

    def list_vaults(self) -> list[VaultState]:
        return self.registry.list_vaults()

    async def close(self) -> None:
        await self.pool.close()
