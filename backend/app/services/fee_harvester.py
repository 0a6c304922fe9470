"""Fee harvester: claims accrued pool fees into the vault's fee account."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.errors import VaultError
from core.models import VaultState
from core.transitions import apply_harvest, check_fee_accrual

from app.clients.pool_adapter import PoolAdapter
from app.services.vault_registry import Clock, VaultRegistry, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class HarvestResult:
    state: VaultState
    fee_amount: int


class FeeHarvester:
    """
    Claim fees and account for them against the vault's fee cap.

    The overflow and cap checks run against the pool's quote BEFORE the
    claim, so a harvest that would exceed the cap moves no funds. The
    claimed amount is checked again; if the pool paid more than it quoted
    and the re-check fails, the transfer has already happened and only the
    VaultState update is aborted.
    """

    def __init__(
        self,
        registry: VaultRegistry,
        pool: PoolAdapter,
        clock: Clock = system_clock,
    ):
        self.registry = registry
        self.pool = pool
        self._clock = clock

    async def harvest_fees(
        self,
        vault_key: str,
        caller: str,
        current_time: int | None = None,
    ) -> HarvestResult:
        """Claim fees for ``vault_key``.

        Raises:
            FeeOverflow: The fee counter would overflow.
            MaxFeeExceeded: Cumulative fees would exceed max_fee_amount.
            PoolAdapterError: The quote or claim failed.
        """
        now = self._clock() if current_time is None else current_time

        async with self.registry.transaction(vault_key, caller, "harvest_fees") as tx:
            state = tx.state

            quoted = await self.pool.quote_fees(vault_key)
            check_fee_accrual(state, quoted)

            fee_amount = await self.pool.harvest_fee(vault_key, state.fee_token_account)
            try:
                updated = apply_harvest(state, fee_amount, now)
            except VaultError as e:
                logger.error(
                    f"Vault {vault_key}: claimed {fee_amount} (quoted {quoted}) into "
                    f"{state.fee_token_account} but accounting rejected it: {e}"
                )
                raise

            tx.stage(updated)

        logger.info(
            f"Vault {vault_key}: harvested {fee_amount} fees, "
            f"total {updated.total_fees_earned}/{updated.max_fee_amount}"
        )
        return HarvestResult(state=updated, fee_amount=fee_amount)
