"""Vault state record and its invariants."""

from __future__ import annotations

from pydantic import BaseModel

from core.constants import (
    EMPTY_BINS,
    MAX_REBALANCE_THRESHOLD,
    MIN_REBALANCE_THRESHOLD,
    STALENESS_WINDOW_SECONDS,
)
from core.errors import InvalidBins, InvalidParameter, InvalidThreshold, MaxFeeExceeded

Bins = tuple[int, int]


class VaultState(BaseModel):
    """Persisted configuration and accounting of one managed position.

    Operations never mutate an instance in place: they build a new one with
    ``model_copy(update=...)`` and the registry swaps it in on commit.
    """

    vault_key: str
    admin: str

    # Liquidity ranges
    current_bins: Bins = EMPTY_BINS
    pending_rebalance_bins: Bins = EMPTY_BINS

    # Timestamps (unix seconds)
    last_rebalance_time: int = 0
    last_fee_harvest_time: int = 0

    # Fee accounting
    total_fees_earned: int = 0
    max_fee_amount: int = 0
    fee_token_account: str = ""

    # Configuration
    rebalance_threshold: int = 1
    min_rebalance_delay: int = 1

    # Price monitoring
    last_price: float = 0.0
    price_update_time: int = 0

    # Kept for account layout compatibility; always 0 off-chain
    bump: int = 0

    @property
    def has_pending_rebalance(self) -> bool:
        return self.pending_rebalance_bins != EMPTY_BINS

    @property
    def has_price(self) -> bool:
        """True once a price sample has been recorded."""
        return self.price_update_time != 0

    def is_price_stale(
        self, current_time: int, window: int = STALENESS_WINDOW_SECONDS
    ) -> bool:
        """Check the age of the last recorded sample against ``window``."""
        return not (current_time - self.price_update_time < window)


def check_invariants(state: VaultState, previous: VaultState | None = None) -> None:
    """Raise if ``state`` breaks any of the vault invariants.

    Run by the registry right before a staged state is committed.
    ``previous`` is the committed state being replaced, if any.
    """
    if not MIN_REBALANCE_THRESHOLD <= state.rebalance_threshold <= MAX_REBALANCE_THRESHOLD:
        raise InvalidThreshold(f"rebalance_threshold={state.rebalance_threshold}")
    if state.min_rebalance_delay <= 0:
        raise InvalidParameter(f"min_rebalance_delay={state.min_rebalance_delay}")
    lower, upper = state.current_bins
    if state.current_bins != EMPTY_BINS and not lower < upper:
        raise InvalidBins(f"current_bins={list(state.current_bins)}")
    if state.total_fees_earned > state.max_fee_amount:
        raise MaxFeeExceeded(
            f"total_fees_earned={state.total_fees_earned} > max_fee_amount={state.max_fee_amount}"
        )
    if previous is not None and state.price_update_time < previous.price_update_time:
        raise InvalidParameter(
            f"price_update_time moved backwards: {previous.price_update_time} -> {state.price_update_time}"
        )
