"""Pure vault state transitions.

Every function here is synchronous and free of I/O. Guards raise a named
``VaultError``; transitions return a NEW ``VaultState`` and never touch the
input. Services in ``app/`` wrap these with locking, authorization and the
liquidity pool calls.
"""

from __future__ import annotations

import math
from decimal import ROUND_HALF_UP, Decimal

from core.constants import (
    EMPTY_BINS,
    I32_MAX,
    I32_MIN,
    I64_MAX,
    MAX_REBALANCE_THRESHOLD,
    MAX_SHARE_PERCENTAGE,
    MIN_REBALANCE_THRESHOLD,
    MIN_SHARE_PERCENTAGE,
    STALENESS_WINDOW_SECONDS,
    U64_MAX,
)
from core.errors import (
    FeeOverflow,
    InvalidBins,
    InvalidParameter,
    InvalidSharePercentage,
    InvalidThreshold,
    MaxFeeExceeded,
    RebalanceTooFrequent,
    StalePrice,
)
from core.models.config import VaultConfig
from core.models.vault import Bins, VaultState


# =============================================================================
# Initialization
# =============================================================================

def initialize_vault(vault_key: str, admin: str, config: VaultConfig) -> VaultState:
    """Create a vault with ``config`` and zeroed accounting fields."""
    if not MIN_REBALANCE_THRESHOLD <= config.rebalance_threshold <= MAX_REBALANCE_THRESHOLD:
        raise InvalidThreshold(f"rebalance_threshold={config.rebalance_threshold}")
    if config.min_rebalance_delay <= 0 or config.min_rebalance_delay > I64_MAX:
        raise InvalidParameter(f"min_rebalance_delay={config.min_rebalance_delay}")
    if not 0 <= config.max_fee_amount <= U64_MAX:
        raise InvalidParameter(f"max_fee_amount={config.max_fee_amount}")
    if not admin:
        raise InvalidParameter("admin identity is empty")

    return VaultState(
        vault_key=vault_key,
        admin=admin,
        fee_token_account=config.fee_token_account,
        rebalance_threshold=config.rebalance_threshold,
        max_fee_amount=config.max_fee_amount,
        min_rebalance_delay=config.min_rebalance_delay,
    )


# =============================================================================
# Deposit
# =============================================================================

def check_deposit(amount: int, bins: Bins) -> None:
    if amount <= 0:
        raise InvalidParameter(f"deposit amount={amount}")
    lower, upper = bins
    if not (I32_MIN <= lower <= I32_MAX and I32_MIN <= upper <= I32_MAX):
        raise InvalidBins(f"bins={list(bins)} outside i32 range")
    if not lower < upper:
        raise InvalidBins(f"bins={list(bins)}")


def apply_deposit(state: VaultState, bins: Bins) -> VaultState:
    return state.model_copy(update={"current_bins": tuple(bins)})


# =============================================================================
# Price monitoring
# =============================================================================

def round_half_away_from_zero(value: float) -> int:
    """Round to the nearest integer, ties away from zero.

    Goes through Decimal (exact for any finite float) so that values like
    0.49999999999999994 are not pushed over the tie by float addition.
    """
    return int(Decimal(value).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def _saturate_i32(value: int) -> int:
    return max(I32_MIN, min(I32_MAX, value))


def compute_drift_pct(last_price: float, new_price: float) -> float:
    """Percentage move from ``last_price`` to ``new_price``."""
    if last_price == 0:
        raise InvalidParameter("drift is undefined for last_price=0")
    return abs(new_price - last_price) / last_price * 100.0


def calculate_new_bins(old_price: float, new_price: float, threshold: int) -> Bins:
    """Candidate range centred on the midpoint, ``threshold`` percent wide each side."""
    mid_price = (old_price + new_price) / 2.0
    spread = threshold / 100.0
    return (
        _saturate_i32(round_half_away_from_zero(mid_price * (1.0 - spread))),
        _saturate_i32(round_half_away_from_zero(mid_price * (1.0 + spread))),
    )


def check_price(
    state: VaultState,
    new_price: float,
    current_time: int,
    staleness_window: int = STALENESS_WINDOW_SECONDS,
) -> VaultState:
    """Record a price sample, staging a rebalance candidate on large drift.

    The staleness guard checks the age of the PREVIOUS sample: a vault whose
    own bookkeeping went stale refuses new prices. The first sample ever
    recorded is taken as the baseline with no staleness or drift check.
    """
    if not math.isfinite(new_price) or new_price <= 0:
        raise InvalidParameter(f"new_price={new_price}")
    if current_time < state.price_update_time:
        raise InvalidParameter(
            f"current_time={current_time} precedes price_update_time={state.price_update_time}"
        )

    update: dict = {"last_price": new_price, "price_update_time": current_time}

    if not state.has_price:
        return state.model_copy(update=update)

    if state.is_price_stale(current_time, staleness_window):
        raise StalePrice(
            f"last sample at {state.price_update_time} is {current_time - state.price_update_time}s old"
        )

    drift_pct = compute_drift_pct(state.last_price, new_price)
    if drift_pct > state.rebalance_threshold:
        update["pending_rebalance_bins"] = calculate_new_bins(
            state.last_price, new_price, state.rebalance_threshold
        )

    return state.model_copy(update=update)


# =============================================================================
# Rebalance
# =============================================================================

def check_rebalance(
    state: VaultState,
    current_time: int,
    staleness_window: int = STALENESS_WINDOW_SECONDS,
) -> Bins:
    """Run the rebalance guards in order and return the staged bins."""
    lower, upper = state.pending_rebalance_bins
    if lower == 0 or upper == 0:
        raise InvalidBins(f"no candidate staged: {list(state.pending_rebalance_bins)}")
    if not lower < upper:
        raise InvalidBins(f"pending_rebalance_bins={list(state.pending_rebalance_bins)}")
    if not current_time - state.last_rebalance_time > state.min_rebalance_delay:
        raise RebalanceTooFrequent(
            f"{current_time - state.last_rebalance_time}s since last rebalance, "
            f"need > {state.min_rebalance_delay}s"
        )
    if state.is_price_stale(current_time, staleness_window):
        raise StalePrice(
            f"last sample at {state.price_update_time} is {current_time - state.price_update_time}s old"
        )
    return (lower, upper)


def apply_rebalance(state: VaultState, current_time: int) -> VaultState:
    return state.model_copy(
        update={
            "current_bins": state.pending_rebalance_bins,
            "pending_rebalance_bins": EMPTY_BINS,
            "last_rebalance_time": current_time,
        }
    )


# =============================================================================
# Fee harvesting
# =============================================================================

def check_fee_accrual(state: VaultState, fee_amount: int) -> int:
    """Validate adding ``fee_amount`` to the fee counter; return the new total."""
    if fee_amount < 0:
        raise InvalidParameter(f"fee_amount={fee_amount}")
    new_total = state.total_fees_earned + fee_amount
    if new_total > U64_MAX:
        raise FeeOverflow(f"{state.total_fees_earned} + {fee_amount}")
    if new_total > state.max_fee_amount:
        raise MaxFeeExceeded(
            f"{state.total_fees_earned} + {fee_amount} > {state.max_fee_amount}"
        )
    return new_total


def apply_harvest(state: VaultState, fee_amount: int, current_time: int) -> VaultState:
    return state.model_copy(
        update={
            "total_fees_earned": check_fee_accrual(state, fee_amount),
            "last_fee_harvest_time": current_time,
        }
    )


# =============================================================================
# Withdrawal
# =============================================================================

def validate_share(share: int) -> None:
    if not MIN_SHARE_PERCENTAGE <= share <= MAX_SHARE_PERCENTAGE:
        raise InvalidSharePercentage(f"share={share}")


def liquidity_to_remove(position_liquidity: int, share: int) -> int:
    """Proportional liquidity for ``share`` percent, truncated.

    The fractional remainder stays in the position.
    """
    validate_share(share)
    return position_liquidity * share // 100
