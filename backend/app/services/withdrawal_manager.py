"""Withdrawal manager: removes a percentage share of the vault's liquidity."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from core.transitions import liquidity_to_remove, validate_share

from app.clients.pool_adapter import LiquidityResult, PoolAdapter
from app.services.vault_registry import VaultRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WithdrawalResult:
    vault_key: str
    share: int
    position_liquidity: int
    amount: int
    removed: LiquidityResult


# Token settlement hook: moves the removed tokens to the requesting party
SettleCallback = Callable[[WithdrawalResult], Awaitable[None]]


class WithdrawalManager:
    """
    Remove ``share`` percent of the position's liquidity from the current bins.

    The amount is ``position_liquidity * share // 100``; the fractional
    remainder stays in the position. VaultState is not modified.
    """

    def __init__(
        self,
        registry: VaultRegistry,
        pool: PoolAdapter,
        settle: SettleCallback | None = None,
    ):
        self.registry = registry
        self.pool = pool
        self._settle = settle

    async def withdraw(self, vault_key: str, caller: str, share: int) -> WithdrawalResult:
        """Withdraw ``share`` percent (1-100) of the vault's position.

        Raises:
            InvalidSharePercentage: ``share`` outside 1-100.
            PoolAdapterError: The pool rejected the removal.
        """
        async with self.registry.transaction(vault_key, caller, "withdraw") as tx:
            validate_share(share)

            position_liquidity = await self.pool.get_position_liquidity(vault_key)
            amount = liquidity_to_remove(position_liquidity, share)
            removed = await self.pool.remove_liquidity(vault_key, tx.state.current_bins, amount)

            result = WithdrawalResult(
                vault_key=vault_key,
                share=share,
                position_liquidity=position_liquidity,
                amount=amount,
                removed=removed,
            )

            if self._settle:
                try:
                    await self._settle(result)
                except Exception as e:
                    logger.error(
                        f"Vault {vault_key}: removed {amount} liquidity but settlement failed: {e}"
                    )
                    raise

        logger.info(
            f"Vault {vault_key}: withdrew {share}% = {amount} of {position_liquidity} liquidity "
            f"from {list(tx.state.current_bins)}"
        )
        return result
