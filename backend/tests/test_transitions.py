"""Tests for the pure vault transitions."""

import math

import pytest

from core.constants import I32_MAX, I32_MIN, U64_MAX
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
from core.models import VaultConfig, VaultState, check_invariants
from core.transitions import (
    apply_deposit,
    apply_harvest,
    apply_rebalance,
    calculate_new_bins,
    check_deposit,
    check_fee_accrual,
    check_price,
    check_rebalance,
    compute_drift_pct,
    initialize_vault,
    liquidity_to_remove,
    round_half_away_from_zero,
    validate_share,
)


def make_state(**overrides) -> VaultState:
    fields = dict(
        vault_key="v1",
        admin="admin",
        fee_token_account="fees",
        rebalance_threshold=5,
        max_fee_amount=10_000,
        min_rebalance_delay=3600,
    )
    fields.update(overrides)
    return VaultState(**fields)


def make_config(**overrides) -> VaultConfig:
    fields = dict(
        fee_token_account="fees",
        rebalance_threshold=5,
        max_fee_amount=10_000,
        min_rebalance_delay=3600,
    )
    fields.update(overrides)
    return VaultConfig(**fields)


class TestInitializeVault:
    def test_fields_set_and_accounting_zeroed(self):
        state = initialize_vault("v1", "admin", make_config())

        assert state.admin == "admin"
        assert state.rebalance_threshold == 5
        assert state.max_fee_amount == 10_000
        assert state.min_rebalance_delay == 3600
        assert state.fee_token_account == "fees"
        assert state.current_bins == (0, 0)
        assert state.pending_rebalance_bins == (0, 0)
        assert state.total_fees_earned == 0
        assert state.last_price == 0.0
        assert state.price_update_time == 0

    @pytest.mark.parametrize("threshold", [0, 101, -1])
    def test_threshold_out_of_range(self, threshold):
        with pytest.raises(InvalidThreshold):
            initialize_vault("v1", "admin", make_config(rebalance_threshold=threshold))

    @pytest.mark.parametrize("threshold", [1, 100])
    def test_threshold_bounds_inclusive(self, threshold):
        state = initialize_vault("v1", "admin", make_config(rebalance_threshold=threshold))
        assert state.rebalance_threshold == threshold

    @pytest.mark.parametrize("delay", [0, -5])
    def test_delay_must_be_positive(self, delay):
        with pytest.raises(InvalidParameter):
            initialize_vault("v1", "admin", make_config(min_rebalance_delay=delay))

    def test_empty_admin_rejected(self):
        with pytest.raises(InvalidParameter):
            initialize_vault("v1", "", make_config())


class TestDeposit:
    def test_valid_deposit(self):
        check_deposit(1000, (90, 110))
        state = apply_deposit(make_state(), (90, 110))
        assert state.current_bins == (90, 110)

    def test_input_not_mutated(self):
        original = make_state()
        apply_deposit(original, (90, 110))
        assert original.current_bins == (0, 0)

    @pytest.mark.parametrize("bins", [(110, 90), (100, 100)])
    def test_inverted_bins_rejected(self, bins):
        with pytest.raises(InvalidBins):
            check_deposit(1000, bins)

    def test_bins_outside_i32_rejected(self):
        with pytest.raises(InvalidBins):
            check_deposit(1000, (0, I32_MAX + 1))

    @pytest.mark.parametrize("amount", [0, -1])
    def test_non_positive_amount_rejected(self, amount):
        with pytest.raises(InvalidParameter):
            check_deposit(amount, (90, 110))


class TestRounding:
    @pytest.mark.parametrize(
        "value,expected",
        [
            (99.75, 100),
            (110.25, 110),
            (2.5, 3),
            (-2.5, -3),
            (0.5, 1),
            (0.49999999999999994, 0),
            (1.4, 1),
        ],
    )
    def test_half_away_from_zero(self, value, expected):
        assert round_half_away_from_zero(value) == expected


class TestCalculateNewBins:
    def test_ten_percent_move_threshold_five(self):
        # mid 105, spread 5% -> [99.75, 110.25] -> [100, 110]
        assert calculate_new_bins(100.0, 110.0, 5) == (100, 110)

    def test_downward_move_is_symmetric(self):
        assert calculate_new_bins(110.0, 100.0, 5) == (100, 110)

    def test_saturates_to_i32(self):
        lower, upper = calculate_new_bins(1e12, 2e12, 50)
        assert lower == I32_MAX
        assert upper == I32_MAX

    def test_full_threshold_gives_zero_lower(self):
        assert calculate_new_bins(100.0, 100.0, 100) == (0, 200)

    def test_never_below_i32_min(self):
        lower, _ = calculate_new_bins(-1e12, -1e12, 5)
        assert lower == I32_MIN


class TestDrift:
    def test_drift_percent(self):
        assert compute_drift_pct(100.0, 110.0) == pytest.approx(10.0)
        assert compute_drift_pct(100.0, 90.0) == pytest.approx(10.0)

    def test_zero_last_price_rejected(self):
        with pytest.raises(InvalidParameter):
            compute_drift_pct(0.0, 10.0)


class TestCheckPrice:
    def test_first_sample_is_baseline(self):
        state = check_price(make_state(), 100.0, 1000)

        assert state.last_price == 100.0
        assert state.price_update_time == 1000
        assert state.pending_rebalance_bins == (0, 0)

    def test_drift_above_threshold_stages_candidate(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        updated = check_price(state, 110.0, 1010)

        assert updated.pending_rebalance_bins == (100, 110)
        assert updated.last_price == 110.0
        assert updated.price_update_time == 1010

    def test_drift_below_threshold_does_not_stage(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        updated = check_price(state, 104.0, 1010)

        assert updated.pending_rebalance_bins == (0, 0)
        assert updated.last_price == 104.0

    def test_small_drift_keeps_existing_candidate(self):
        state = make_state(
            last_price=100.0, price_update_time=1000, pending_rebalance_bins=(100, 110)
        )
        updated = check_price(state, 101.0, 1010)
        assert updated.pending_rebalance_bins == (100, 110)

    def test_stale_previous_sample_rejected(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        with pytest.raises(StalePrice):
            check_price(state, 101.0, 1030)

    def test_previous_sample_29_seconds_old_accepted(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        assert check_price(state, 101.0, 1029).price_update_time == 1029

    def test_custom_staleness_window(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        assert check_price(state, 101.0, 1100, staleness_window=120).price_update_time == 1100

    def test_time_going_backwards_rejected(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        with pytest.raises(InvalidParameter):
            check_price(state, 101.0, 999)

    @pytest.mark.parametrize("price", [0.0, -1.0, math.nan, math.inf])
    def test_invalid_price_rejected(self, price):
        with pytest.raises(InvalidParameter):
            check_price(make_state(), price, 1000)

    def test_rejected_sample_leaves_state_untouched(self):
        state = make_state(last_price=100.0, price_update_time=1000)
        with pytest.raises(StalePrice):
            check_price(state, 200.0, 5000)
        assert state.last_price == 100.0
        assert state.pending_rebalance_bins == (0, 0)


class TestCheckRebalance:
    def ready_state(self, **overrides):
        fields = dict(
            pending_rebalance_bins=(100, 110),
            last_rebalance_time=1000,
            last_price=110.0,
            price_update_time=4990,
        )
        fields.update(overrides)
        return make_state(**fields)

    def test_too_frequent(self):
        with pytest.raises(RebalanceTooFrequent):
            check_rebalance(self.ready_state(price_update_time=1990), 2000)

    def test_exactly_at_delay_is_too_frequent(self):
        with pytest.raises(RebalanceTooFrequent):
            check_rebalance(self.ready_state(price_update_time=4590), 4600)

    def test_past_delay_proceeds(self):
        assert check_rebalance(self.ready_state(), 5000) == (100, 110)

    def test_no_candidate(self):
        with pytest.raises(InvalidBins):
            check_rebalance(self.ready_state(pending_rebalance_bins=(0, 0)), 5000)

    def test_candidate_with_zero_component(self):
        with pytest.raises(InvalidBins):
            check_rebalance(self.ready_state(pending_rebalance_bins=(0, 200)), 5000)

    def test_inverted_candidate(self):
        with pytest.raises(InvalidBins):
            check_rebalance(self.ready_state(pending_rebalance_bins=(110, 100)), 5000)

    def test_stale_price(self):
        with pytest.raises(StalePrice):
            check_rebalance(self.ready_state(price_update_time=4900), 5000)

    def test_bins_checked_before_delay(self):
        state = self.ready_state(pending_rebalance_bins=(0, 0), price_update_time=0)
        with pytest.raises(InvalidBins):
            check_rebalance(state, 2000)

    def test_delay_checked_before_staleness(self):
        state = self.ready_state(price_update_time=0)
        with pytest.raises(RebalanceTooFrequent):
            check_rebalance(state, 2000)

    def test_apply_rebalance(self):
        updated = apply_rebalance(self.ready_state(current_bins=(90, 100)), 5000)

        assert updated.current_bins == (100, 110)
        assert updated.pending_rebalance_bins == (0, 0)
        assert updated.last_rebalance_time == 5000


class TestFees:
    def test_accrual_within_cap(self):
        state = apply_harvest(make_state(total_fees_earned=100), 100, 2000)

        assert state.total_fees_earned == 200
        assert state.last_fee_harvest_time == 2000

    def test_reaching_cap_exactly_allowed(self):
        state = make_state(total_fees_earned=9_900)
        assert check_fee_accrual(state, 100) == 10_000

    def test_exceeding_cap(self):
        state = make_state(total_fees_earned=9_950)
        with pytest.raises(MaxFeeExceeded):
            check_fee_accrual(state, 100)

    def test_overflow_before_cap(self):
        state = make_state(total_fees_earned=U64_MAX, max_fee_amount=U64_MAX)
        with pytest.raises(FeeOverflow):
            check_fee_accrual(state, 1)

    def test_negative_fee_rejected(self):
        with pytest.raises(InvalidParameter):
            check_fee_accrual(make_state(), -1)


class TestWithdrawalMath:
    @pytest.mark.parametrize("share", [0, 101, -1])
    def test_share_out_of_range(self, share):
        with pytest.raises(InvalidSharePercentage):
            validate_share(share)

    @pytest.mark.parametrize(
        "liquidity,share,expected",
        [(1000, 50, 500), (999, 50, 499), (1000, 100, 1000), (1000, 1, 10), (7, 1, 0)],
    )
    def test_amount_truncated(self, liquidity, share, expected):
        assert liquidity_to_remove(liquidity, share) == expected


class TestInvariants:
    def test_valid_state_passes(self):
        check_invariants(make_state(current_bins=(90, 110)))

    def test_empty_bins_allowed(self):
        check_invariants(make_state())

    def test_inverted_current_bins(self):
        with pytest.raises(InvalidBins):
            check_invariants(make_state(current_bins=(110, 90)))

    def test_fees_over_cap(self):
        with pytest.raises(MaxFeeExceeded):
            check_invariants(make_state(total_fees_earned=10_001))

    def test_threshold_out_of_range(self):
        with pytest.raises(InvalidThreshold):
            check_invariants(make_state(rebalance_threshold=0))

    def test_price_time_monotonic(self):
        previous = make_state(price_update_time=1000)
        with pytest.raises(InvalidParameter):
            check_invariants(make_state(price_update_time=999), previous=previous)
