"""
config.py - Lending Parameters and Clocks

In-memory implementations of the configuration store and the clock the
lending pool reads from:

    LendingConfig   accepted-collateral allowlist, per-asset collateral rate,
                    per-asset loan cap, loan currency
    ManualClock     logical clock that only moves forward (simulations, tests)
    SystemClock     wall clock

The pool only ever reads configuration (see ConfigView in core.py). The
setters here are the administrative surface of the store itself.
"""

from __future__ import annotations
import time
from typing import Dict, Optional, Set

from .core import UnacceptedCollateral, is_uint256


class LendingConfig:
    """
    Mutable store of global lending parameters.

    Example:
        config = LendingConfig("USDC")
        config.accept_collateral("PUNKS", rate=10, max_loan_amount=5_000)
        config.collateral_rate("PUNKS")   # 10
        config.max_loan_amount("APES")    # 0 (not configured)
    """

    def __init__(
        self,
        loan_currency: str,
        accepted: Optional[Set[str]] = None,
        rates: Optional[Dict[str, int]] = None,
        max_loans: Optional[Dict[str, int]] = None,
    ):
        self._loan_currency = _require_id(loan_currency, "loan_currency")
        self._accepted: Set[str] = set()
        self._rates: Dict[str, int] = {}
        self._max_loans: Dict[str, int] = {}

        for asset in accepted or ():
            self._accepted.add(_require_id(asset, "asset"))
        for asset, rate in (rates or {}).items():
            self.set_collateral_rate(asset, rate)
        for asset, amount in (max_loans or {}).items():
            self.set_max_loan_amount(asset, amount)

    # ========================================================================
    # ConfigView PROTOCOL IMPLEMENTATION
    # ========================================================================

    def is_accepted(self, asset: str) -> bool:
        return asset in self._accepted

    def collateral_rate(self, asset: str) -> int:
        """
        Annual collateral rate as an integer percentage.

        Raises:
            UnacceptedCollateral: If the asset is not on the allowlist.
        """
        if asset not in self._accepted:
            raise UnacceptedCollateral(f"Collateral {asset} is not accepted")
        return self._rates.get(asset, 0)

    def max_loan_amount(self, asset: str) -> int:
        """Loan cap for an asset class (0 if never configured)."""
        return self._max_loans.get(asset, 0)

    def loan_currency(self) -> str:
        return self._loan_currency

    # ========================================================================
    # ADMINISTRATION (Mutating)
    # ========================================================================

    def accept_collateral(
        self,
        asset: str,
        rate: Optional[int] = None,
        max_loan_amount: Optional[int] = None,
    ) -> None:
        """Add an asset class to the allowlist, optionally setting its rate and cap."""
        self._accepted.add(_require_id(asset, "asset"))
        if rate is not None:
            self.set_collateral_rate(asset, rate)
        if max_loan_amount is not None:
            self.set_max_loan_amount(asset, max_loan_amount)

    def remove_collateral(self, asset: str) -> None:
        """
        Take an asset class off the allowlist.

        Rate and cap are kept so that re-accepting restores them. Open loans
        against the asset are unaffected.
        """
        self._accepted.discard(asset)

    def set_collateral_rate(self, asset: str, rate: int) -> None:
        _require_id(asset, "asset")
        if isinstance(rate, bool) or not isinstance(rate, int) or not 0 <= rate <= 100:
            raise ValueError(f"collateral rate must be an int in 0..100, got {rate!r}")
        self._rates[asset] = rate

    def set_max_loan_amount(self, asset: str, amount: int) -> None:
        _require_id(asset, "asset")
        if not is_uint256(amount):
            raise ValueError(f"max loan amount must be a non-negative int, got {amount!r}")
        self._max_loans[asset] = amount

    def set_loan_currency(self, currency: str) -> None:
        self._loan_currency = _require_id(currency, "loan_currency")

    def accepted_assets(self) -> Set[str]:
        return set(self._accepted)

    def __repr__(self) -> str:
        return f"LendingConfig(currency={self._loan_currency}, accepted={sorted(self._accepted)})"


def _require_id(value: str, name: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"{name} cannot be empty")
    return value


# ============================================================================
# CLOCKS
# ============================================================================

class ManualClock:
    """
    Logical clock in unix seconds.

    Time can only move forward, never backward.
    """

    def __init__(self, start: int = 0):
        if start < 0:
            raise ValueError(f"start time cannot be negative, got {start}")
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, seconds: int) -> int:
        """Move the clock forward by a number of seconds and return the new time."""
        if seconds < 0:
            raise ValueError(f"Cannot move time backwards by {seconds}s")
        self._now += seconds
        return self._now

    def advance_to(self, timestamp: int) -> int:
        """
        Move the clock to an absolute time.

        Raises:
            ValueError: If timestamp is before the current time
        """
        if timestamp < self._now:
            raise ValueError(f"Cannot move time backwards: {timestamp} < {self._now}")
        self._now = timestamp
        return self._now


class SystemClock:
    """Wall-clock time in whole unix seconds."""

    def now(self) -> int:
        return int(time.time())
