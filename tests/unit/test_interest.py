"""
test_interest.py - Tests for the Rate/Interest Calculator

Tests:
- Interest formula and flooring
- Overdue day counting and penalty
- Repayment quotes
- estimate() against configuration
- 256-bit overflow detection
"""

import pytest

from lending import (
    Loan, LendingConfig,
    calculate_interest, calculate_days_overdue, calculate_penalty,
    estimate, quote,
    UnacceptedCollateral, ArithmeticOverflow,
    SECONDS_PER_DAY, SECONDS_PER_YEAR, UINT256_MAX,
)

from tests.scenario import T0, THIRTY_DAYS, make_config


def _loan(principal=1_000, interest=8, due_at=T0 + THIRTY_DAYS) -> Loan:
    return Loan(
        borrower="alice",
        collateral_asset="PUNKS",
        collateral_id=1,
        currency="USDC",
        principal=principal,
        duration=THIRTY_DAYS,
        interest=interest,
        created_at=due_at - THIRTY_DAYS,
        due_at=due_at,
        index=0,
    )


# =============================================================================
# INTEREST
# =============================================================================

class TestCalculateInterest:
    """Tests for calculate_interest pure function."""

    def test_worked_example(self):
        # 1000 * 10 * 2592000 / (100 * 31536000) = 8.21... -> 8
        assert calculate_interest(1_000, 10, THIRTY_DAYS) == 8

    def test_full_year_is_rate_percent(self):
        assert calculate_interest(1_000_000, 7, SECONDS_PER_YEAR) == 70_000

    def test_floors(self):
        # 100 * 1 * 1 day / (100 * year) is far below one unit
        assert calculate_interest(100, 1, SECONDS_PER_DAY) == 0

    def test_zero_rate(self):
        assert calculate_interest(1_000_000, 0, SECONDS_PER_YEAR) == 0

    def test_overflow_raises(self):
        with pytest.raises(ArithmeticOverflow):
            calculate_interest(UINT256_MAX // 2, 100, SECONDS_PER_YEAR)

    def test_large_but_in_range(self):
        principal = 10 ** 60
        assert calculate_interest(principal, 100, SECONDS_PER_YEAR) == principal


# =============================================================================
# PENALTY
# =============================================================================

class TestOverdue:
    """Tests for calculate_days_overdue and calculate_penalty."""

    def test_on_due_date_not_overdue(self):
        assert calculate_days_overdue(T0, T0) == 0
        assert calculate_penalty(1_000, T0, T0) == 0

    def test_before_due_date(self):
        assert calculate_penalty(1_000, T0, T0 - 5 * SECONDS_PER_DAY) == 0

    def test_partial_day_is_not_counted(self):
        assert calculate_days_overdue(T0, T0 + SECONDS_PER_DAY - 1) == 0
        assert calculate_penalty(1_000, T0, T0 + SECONDS_PER_DAY - 1) == 0

    def test_one_day_exactly(self):
        assert calculate_days_overdue(T0, T0 + SECONDS_PER_DAY) == 1
        assert calculate_penalty(1_000, T0, T0 + SECONDS_PER_DAY) == 50

    def test_three_days_late(self):
        assert calculate_penalty(1_000, T0, T0 + 3 * SECONDS_PER_DAY) == 150

    def test_penalty_floors(self):
        # 30 * 5 * 1 / 100 = 1.5 -> 1
        assert calculate_penalty(30, T0, T0 + SECONDS_PER_DAY) == 1

    def test_penalty_can_exceed_principal(self):
        assert calculate_penalty(1_000, T0, T0 + 40 * SECONDS_PER_DAY) == 2_000


# =============================================================================
# QUOTE
# =============================================================================

class TestQuote:
    """Tests for quote()."""

    def test_on_time(self):
        loan = _loan()
        q = quote(loan, loan.due_at)
        assert (q.principal, q.interest, q.penalty, q.days_overdue, q.total) == (1_000, 8, 0, 0, 1_008)

    def test_three_days_late(self):
        loan = _loan()
        q = quote(loan, loan.due_at + 3 * SECONDS_PER_DAY)
        assert q.days_overdue == 3
        assert q.penalty == 150
        assert q.total == 1_158

    def test_early_repayment_still_pays_full_interest(self):
        loan = _loan()
        q = quote(loan, loan.created_at + 1)
        assert q.total == 1_008


# =============================================================================
# ESTIMATE
# =============================================================================

class TestEstimate:
    """Tests for estimate() against a configuration store."""

    def test_uses_configured_rate(self):
        config = make_config()
        assert estimate(config, "PUNKS", 1_000, THIRTY_DAYS) == 8
        # APES at 20%
        assert estimate(config, "APES", 1_000, THIRTY_DAYS) == 16

    def test_unaccepted_collateral(self):
        with pytest.raises(UnacceptedCollateral):
            estimate(make_config(), "DOODLES", 1_000, THIRTY_DAYS)

    def test_removed_collateral(self):
        config = make_config()
        config.remove_collateral("PUNKS")
        with pytest.raises(UnacceptedCollateral):
            estimate(config, "PUNKS", 1_000, THIRTY_DAYS)

    def test_rate_change_changes_estimate(self):
        config = LendingConfig("USDC")
        config.accept_collateral("PUNKS", rate=10)
        before = estimate(config, "PUNKS", 1_000_000, SECONDS_PER_YEAR)
        config.set_collateral_rate("PUNKS", 20)
        after = estimate(config, "PUNKS", 1_000_000, SECONDS_PER_YEAR)
        assert (before, after) == (100_000, 200_000)
