"""
interest.py - Rate/Interest Calculator

Pure functions for loan pricing. Integer arithmetic throughout, floor
division, every intermediate product checked against the 256-bit range.

Key Formulas:
    interest     = principal * rate * duration // (100 * SECONDS_PER_YEAR)
    days_overdue = (now - due_at) // SECONDS_PER_DAY          (0 if not late)
    penalty      = principal * PENALTY_RATE_PERCENT * days_overdue // 100
    total        = principal + interest + penalty

Interest is fixed at origination. The penalty is the only charge that
depends on the settlement time.

Example:
    principal=1000, rate=10%, duration=30 days
    interest = 1000 * 10 * 2592000 // (100 * 31536000) = 8
    settled 3 days late: penalty = 1000 * 5 * 3 // 100 = 150, total = 1158
"""

from __future__ import annotations
from dataclasses import dataclass

from .core import (
    ConfigView, Loan,
    SECONDS_PER_DAY, SECONDS_PER_YEAR, PENALTY_RATE_PERCENT,
    UnacceptedCollateral, checked_mul, checked_add,
)


@dataclass(frozen=True, slots=True)
class RepaymentQuote:
    """Amount due to settle a loan at a given time."""
    principal: int
    interest: int
    penalty: int
    days_overdue: int
    total: int


# ============================================================================
# PURE CALCULATION FUNCTIONS
# ============================================================================

def calculate_interest(principal: int, rate: int, duration: int) -> int:
    """
    Interest owed for a loan of `duration` seconds at an annual `rate` percent.

    Raises:
        ArithmeticOverflow: If principal * rate * duration leaves the 256-bit range.
    """
    return checked_mul(principal, rate, duration) // (100 * SECONDS_PER_YEAR)


def calculate_days_overdue(due_at: int, now: int) -> int:
    """Whole days elapsed past the due time (0 when settling on or before it)."""
    if now <= due_at:
        return 0
    return (now - due_at) // SECONDS_PER_DAY


def calculate_penalty(principal: int, due_at: int, now: int) -> int:
    """
    Overdue penalty: PENALTY_RATE_PERCENT of principal per whole day late.

    Raises:
        ArithmeticOverflow: On 256-bit overflow.
    """
    days = calculate_days_overdue(due_at, now)
    if days == 0:
        return 0
    return checked_mul(principal, PENALTY_RATE_PERCENT, days) // 100


def quote(loan: Loan, now: int) -> RepaymentQuote:
    """Break down what settling `loan` at time `now` costs."""
    days = calculate_days_overdue(loan.due_at, now)
    penalty = calculate_penalty(loan.principal, loan.due_at, now)
    return RepaymentQuote(
        principal=loan.principal,
        interest=loan.interest,
        penalty=penalty,
        days_overdue=days,
        total=checked_add(loan.principal, loan.interest, penalty),
    )


# ============================================================================
# CONFIGURATION ADAPTER
# ============================================================================

def estimate(config: ConfigView, collateral_asset: str, principal: int, duration: int) -> int:
    """
    Interest for a prospective loan using the asset's configured rate.

    Args:
        config: Read-only configuration store
        collateral_asset: Asset class offered as collateral
        principal: Loan amount
        duration: Loan length in seconds

    Returns:
        Interest in the currency's smallest unit (floored)

    Raises:
        UnacceptedCollateral: If the asset is not on the allowlist.
        ArithmeticOverflow: On 256-bit overflow.
    """
    if not config.is_accepted(collateral_asset):
        raise UnacceptedCollateral(f"Collateral {collateral_asset} is not accepted")
    return calculate_interest(principal, config.collateral_rate(collateral_asset), duration)
