"""Price monitor: ingests price samples and stages rebalance candidates."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from core.constants import EMPTY_BINS, STALENESS_WINDOW_SECONDS
from core.models import Bins, VaultState
from core.transitions import check_price, compute_drift_pct

from app.services.vault_registry import Clock, VaultRegistry, system_clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PriceUpdate:
    """Outcome of a recorded price sample.

    Attributes:
        state: Committed vault state after the sample.
        drift_pct: Move against the previous sample (None for the first sample).
        staged_bins: Candidate staged by this sample, if any.
    """

    state: VaultState
    drift_pct: float | None = None
    staged_bins: Bins | None = None


class PriceMonitor:
    """
    Record externally supplied price samples for a vault.

    Only touches VaultState; never calls the liquidity pool. A staged
    candidate is consumed later by RebalanceExecutor.
    """

    def __init__(
        self,
        registry: VaultRegistry,
        staleness_window: int = STALENESS_WINDOW_SECONDS,
        clock: Clock = system_clock,
    ):
        self.registry = registry
        self.staleness_window = staleness_window
        self._clock = clock

    async def record_price(
        self,
        vault_key: str,
        caller: str,
        new_price: float,
        current_time: int | None = None,
    ) -> PriceUpdate:
        """Record ``new_price`` observed at ``current_time``.

        Raises:
            StalePrice: The previous sample is older than the staleness window.
            InvalidParameter: Non-positive price or a clock running backwards.
        """
        now = self._clock() if current_time is None else current_time

        async with self.registry.transaction(vault_key, caller, "record_price") as tx:
            previous = tx.state
            updated = check_price(previous, new_price, now, self.staleness_window)
            tx.stage(updated)

        drift_pct = None
        if previous.has_price:
            drift_pct = compute_drift_pct(previous.last_price, new_price)

        drifted = drift_pct is not None and drift_pct > previous.rebalance_threshold
        staged_bins = updated.pending_rebalance_bins if drifted and updated.has_pending_rebalance else None

        if drifted and staged_bins is None:
            logger.info(
                f"Vault {vault_key}: price {previous.last_price} -> {new_price} "
                f"drift={drift_pct:.2f}% but candidate bins round to {list(EMPTY_BINS)}, nothing staged"
            )
        elif staged_bins is not None:
            logger.info(
                f"Vault {vault_key}: price {previous.last_price} -> {new_price} "
                f"drift={drift_pct:.2f}% > {previous.rebalance_threshold}%, "
                f"staged bins {list(staged_bins)}"
            )
        else:
            logger.debug(f"Vault {vault_key}: price {new_price} recorded at {now}")

        return PriceUpdate(state=updated, drift_pct=drift_pct, staged_bins=staged_bins)
