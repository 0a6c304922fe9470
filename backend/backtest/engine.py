"""Replay engine: drives one vault through a price series.

Uses the same VaultManager the API serves, over an InMemoryPool, so every
guard behaves exactly as it does live. For each sample, in order:

1. Record the price (rejections are counted by error kind)
2. If a candidate is staged, attempt a rebalance with the position's
   current liquidity
3. If ``harvest_interval`` seconds passed since the last attempt, harvest
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.constants import STALENESS_WINDOW_SECONDS
from core.errors import VaultError
from core.models import VaultConfig
from core.transitions import calculate_new_bins

from app.clients import InMemoryPool
from app.services import VaultManager

from backtest.price_source import PriceSample
from backtest.stats import RebalanceRecord, SimulationResult

logger = logging.getLogger(__name__)

ADMIN = "backtest-admin"
FEE_ACCOUNT = "backtest-fees"


@dataclass
class SimulationConfig:
    """Parameters for one replay run."""

    threshold: int = 5
    min_rebalance_delay: int = 3600
    max_fee_amount: int = 10_000
    deposit: int = 1_000
    fee_rate: int = 100
    harvest_interval: int = 86_400
    staleness_window: int = STALENESS_WINDOW_SECONDS


class SimulationEngine:
    """Replay price samples through a freshly initialized vault."""

    def __init__(self, config: SimulationConfig):
        self.config = config
        self.pool = InMemoryPool(fee_rate=config.fee_rate)
        self.manager = VaultManager(
            pool=self.pool,
            staleness_window=config.staleness_window,
        )
        self.vault_key = ADMIN
        self._last_harvest_attempt = 0

    async def run(self, samples: list[PriceSample], prices_file: str = "") -> SimulationResult:
        cfg = self.config
        result = SimulationResult(
            prices_file=prices_file,
            threshold=cfg.threshold,
            min_rebalance_delay=cfg.min_rebalance_delay,
            max_fee_amount=cfg.max_fee_amount,
        )
        if not samples:
            return result

        await self.manager.initialize(
            ADMIN,
            VaultConfig(
                fee_token_account=FEE_ACCOUNT,
                rebalance_threshold=cfg.threshold,
                max_fee_amount=cfg.max_fee_amount,
                min_rebalance_delay=cfg.min_rebalance_delay,
            ),
        )

        first = samples[0]
        result.start_time = first.timestamp
        result.first_price = first.price
        self._last_harvest_attempt = first.timestamp

        # Baseline sample, then the opening deposit centred on it
        await self._record_price(first, result)
        await self._open_position(first, result)

        for sample in samples[1:]:
            await self._step(sample, result)

        last = samples[-1]
        state = self.manager.get_vault(self.vault_key)
        result.samples = len(samples)
        result.end_time = last.timestamp
        result.last_price = last.price
        result.final_bins = state.current_bins
        result.final_pending_bins = state.pending_rebalance_bins
        result.final_liquidity = await self.pool.get_position_liquidity(self.vault_key)

        logger.info(
            f"Replay done: {result.samples} samples, {result.candidates_staged} candidates, "
            f"{result.rebalances_committed} rebalances, {result.fees_harvested} fees"
        )
        return result

    async def _open_position(self, sample: PriceSample, result: SimulationResult) -> None:
        """Deposit into bins centred on the first price.

        Low prices can round the range to nothing (1.0 at 5% gives [1, 1]).
        The rejection is counted and the replay continues without a position
        until a rebalance opens one.
        """
        bins = calculate_new_bins(sample.price, sample.price, self.config.threshold)
        try:
            await self.manager.deposit(self.vault_key, ADMIN, self.config.deposit, bins)
        except VaultError as e:
            result.deposit_rejections[e.kind] += 1
            logger.warning(f"Opening deposit into {list(bins)} rejected: {e}")
            return
        result.initial_bins = bins

    async def _step(self, sample: PriceSample, result: SimulationResult) -> None:
        await self._record_price(sample, result)

        state = self.manager.get_vault(self.vault_key)
        if state.has_pending_rebalance:
            await self._rebalance(sample, result)

        if sample.timestamp - self._last_harvest_attempt >= self.config.harvest_interval:
            self._last_harvest_attempt = sample.timestamp
            await self._harvest(sample, result)

    async def _record_price(self, sample: PriceSample, result: SimulationResult) -> None:
        try:
            update = await self.manager.record_price(
                self.vault_key, ADMIN, sample.price, sample.timestamp
            )
        except VaultError as e:
            result.price_rejections[e.kind] += 1
            return

        result.prices_recorded += 1
        if update.staged_bins is not None:
            result.candidates_staged += 1

    async def _rebalance(self, sample: PriceSample, result: SimulationResult) -> None:
        amount = await self.pool.get_position_liquidity(self.vault_key) or self.config.deposit
        try:
            rebalanced = await self.manager.rebalance(
                self.vault_key, ADMIN, amount, sample.timestamp
            )
        except VaultError as e:
            result.rebalance_rejections[e.kind] += 1
            return

        result.rebalances.append(
            RebalanceRecord(
                timestamp=sample.timestamp,
                price=sample.price,
                old_bins=rebalanced.old_bins,
                new_bins=rebalanced.new_bins,
            )
        )

    async def _harvest(self, sample: PriceSample, result: SimulationResult) -> None:
        try:
            harvested = await self.manager.harvest_fees(self.vault_key, ADMIN, sample.timestamp)
        except VaultError as e:
            result.harvest_rejections[e.kind] += 1
            return

        result.harvests += 1
        result.fees_harvested += harvested.fee_amount
