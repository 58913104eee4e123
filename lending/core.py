"""
Core types and protocols for the collateralized lending ledger.

This module provides the foundational pieces every other module builds on:
1. Protocols: narrow read/transfer interfaces to the external collaborators
   (non-fungible asset registry, fungible token ledger, configuration, clock)
2. Immutable data structures: Loan, LoanEvent
3. Exceptions: LendingError and the named failure conditions
4. Constants: time units, 256-bit bound, reserved identities
5. Helpers: identity validation, checked integer arithmetic, content hashing

Nothing in this module mutates lending state.
"""

from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
import hashlib
from typing import Any, Dict, Optional, Protocol, Tuple, runtime_checkable


# ============================================================================
# CONSTANTS
# ============================================================================

SECONDS_PER_DAY = 24 * 60 * 60
SECONDS_PER_YEAR = 365 * SECONDS_PER_DAY

# Daily overdue penalty, as a percentage of principal.
PENALTY_RATE_PERCENT = 5

# Amounts live in the 256-bit unsigned range of the token platforms they model.
UINT256_MAX = 2 ** 256 - 1

# The null identity. Never a valid caller.
NULL_ADDRESS = "0x0000000000000000000000000000000000000000"

# Default wallet holding collateral in custody and the loan currency float.
POOL_WALLET = "lending_pool"

EVENT_LOAN_ORIGINATED = "LoanOriginated"
EVENT_LOAN_REPAID = "LoanRepaid"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LendingError(Exception):
    """Base exception for all lending-related errors."""
    pass


class InvalidCaller(LendingError):
    """Raised when the calling identity is null, blank, or reserved."""
    pass


class InvalidLoanTerms(LendingError):
    """Raised when principal or duration is not a positive 256-bit integer."""
    pass


class MaxLoanAmountExceeded(LendingError):
    """Raised when the requested principal is above the asset's loan cap."""
    pass


class UnacceptedCollateral(LendingError):
    """Raised when the collateral asset class is not on the allowlist."""
    pass


class InsufficientCollateralBalance(LendingError):
    """Raised when the borrower holds (or has locked) no unit of the asset class."""
    pass


class NotOwner(LendingError):
    """Raised when the caller does not own the specific collateral unit."""
    pass


class LoanNotFound(LendingError):
    """Raised when a loan index does not reference an open loan of the caller."""
    pass


class LoanAlreadyClosed(LoanNotFound):
    """Raised when settling a loan that has already been repaid."""
    pass


class InsufficientTokenBalance(LendingError):
    """Raised when the borrower cannot cover principal, interest and penalty."""
    pass


class TransferFailed(LendingError):
    """Raised when a collaborator transfer fails; all effects are rolled back."""
    pass


class ArithmeticOverflow(LendingError):
    """Raised when an amount calculation leaves the 256-bit unsigned range."""
    pass


# ============================================================================
# PROTOCOLS
# ============================================================================

@runtime_checkable
class AssetRegistry(Protocol):
    """
    Ownership and transfer primitive for non-fungible collateral.

    Asset classes are identified by string (e.g. an NFT contract address);
    units within a class by integer id.
    """

    def nft_balance_of(self, owner: str, asset: str) -> int:
        """Return how many units of an asset class the owner holds."""
        ...

    def owner_of(self, asset: str, unit_id: int) -> Optional[str]:
        """Return the current owner of a unit, or None if it does not exist."""
        ...

    def transfer_nft(self, asset: str, source: str, dest: str, unit_id: int) -> bool:
        """Move a unit between owners. Returns False if the transfer did not happen."""
        ...


@runtime_checkable
class TokenLedger(Protocol):
    """Balance and transfer primitive for the fungible loan currency."""

    def balance_of(self, owner: str, currency: str) -> int:
        """Return the owner's balance in the currency's smallest unit."""
        ...

    def transfer(self, currency: str, source: str, dest: str, amount: int) -> bool:
        """Move an amount between owners. Returns False if the transfer did not happen."""
        ...


@runtime_checkable
class ConfigView(Protocol):
    """
    Read-only access to the global lending parameters.

    Set elsewhere (see LendingConfig for the in-memory store); the pool
    only reads.
    """

    def is_accepted(self, asset: str) -> bool:
        ...

    def collateral_rate(self, asset: str) -> int:
        """Annual rate as an integer percentage (0-100)."""
        ...

    def max_loan_amount(self, asset: str) -> int:
        ...

    def loan_currency(self) -> str:
        ...


@runtime_checkable
class Clock(Protocol):
    """Source of the current time in unix seconds."""

    def now(self) -> int:
        ...


# ============================================================================
# ENUMS
# ============================================================================

class LoanStatus(str, Enum):
    """Status of a loan record."""
    OPEN = "open"         # Collateral locked, principal outstanding
    CLOSED = "closed"     # Repaid, collateral returned (terminal)


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class Loan:
    """
    One borrow against one collateral unit.

    Attributes:
        borrower: Identity that took the loan.
        collateral_asset: Asset class of the collateral.
        collateral_id: Unit id within the asset class.
        currency: Fungible token disbursed and repaid.
        principal: Loan amount in the currency's smallest unit.
        duration: Requested length in seconds.
        interest: Interest owed, fixed at origination.
        created_at: Origination time (unix seconds).
        due_at: created_at + duration, fixed at origination.
        index: Position in the borrower's loan list (stable).
        status: OPEN until settled, then CLOSED.
        closed_at: Settlement time, None while open.
        penalty_paid: Overdue penalty charged at settlement.

    Records are immutable. Settlement replaces the record with a closed copy.
    """
    borrower: str
    collateral_asset: str
    collateral_id: int
    currency: str
    principal: int
    duration: int
    interest: int
    created_at: int
    due_at: int
    index: int
    status: LoanStatus = LoanStatus.OPEN
    closed_at: Optional[int] = None
    penalty_paid: int = 0

    @property
    def is_open(self) -> bool:
        return self.status == LoanStatus.OPEN

    def is_overdue(self, now: int) -> bool:
        return self.is_open and now > self.due_at

    def __repr__(self) -> str:
        return (
            f"Loan(#{self.index} {self.borrower}: {self.principal} {self.currency} "
            f"against {self.collateral_asset}#{self.collateral_id}, {self.status.value})"
        )


def _canonicalize(value: Any) -> str:
    """
    Produce a canonical string representation of a value for hashing.

    Dict ordering does not affect the result.
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Enum):
        return f"E:{value.value}"
    if isinstance(value, int):
        return f"N:{value}"
    if isinstance(value, str):
        return f"S:{value}"
    if isinstance(value, dict):
        items = sorted(value.items(), key=lambda kv: str(kv[0]))
        serialized = ",".join(f"{_canonicalize(k)}:{_canonicalize(v)}" for k, v in items)
        return f"{{{serialized}}}"
    if isinstance(value, (list, tuple)):
        serialized = ",".join(_canonicalize(item) for item in value)
        return f"[{serialized}]"
    return f"R:{repr(value)}"


def _compute_event_id(event_type: str, payload: Dict[str, Any]) -> str:
    """
    Deterministic content hash of an event.

    Same event type and payload always give the same id.
    """
    content = f"event:{event_type}|{_canonicalize(payload)}"
    return hashlib.sha256(content.encode()).hexdigest()[:16]


@dataclass(frozen=True, slots=True)
class LoanEvent:
    """
    Notification emitted once per successful request or repayment.

    Carries the full loan tuple (borrower, collateral asset and id, currency,
    principal, duration, interest) and the time of the call. Repaid events
    also carry the penalty that was charged.
    """
    event_type: str
    borrower: str
    collateral_asset: str
    collateral_id: int
    currency: str
    principal: int
    duration: int
    interest: int
    timestamp: int
    loan_index: int
    penalty: int = 0
    event_id: str = field(default="")

    def __post_init__(self):
        if self.event_type not in (EVENT_LOAN_ORIGINATED, EVENT_LOAN_REPAID):
            raise ValueError(f"Unknown event type: {self.event_type}")
        if not self.event_id:
            object.__setattr__(self, 'event_id', _compute_event_id(self.event_type, self.payload()))

    def payload(self) -> Dict[str, Any]:
        return {
            'borrower': self.borrower,
            'collateral_asset': self.collateral_asset,
            'collateral_id': self.collateral_id,
            'currency': self.currency,
            'principal': self.principal,
            'duration': self.duration,
            'interest': self.interest,
            'timestamp': self.timestamp,
            'loan_index': self.loan_index,
            'penalty': self.penalty,
        }

    def __repr__(self) -> str:
        return (
            f"{self.event_type}({self.borrower} #{self.loan_index}: {self.principal} {self.currency}, "
            f"{self.collateral_asset}#{self.collateral_id}, t={self.timestamp})"
        )


# ============================================================================
# HELPERS
# ============================================================================

def is_valid_identity(identity: Any) -> bool:
    """True for a non-blank string that is not the null address."""
    if not isinstance(identity, str):
        return False
    if not identity.strip():
        return False
    return identity.lower() != NULL_ADDRESS


def is_uint256(value: Any) -> bool:
    # bool is an int subclass; True is not an amount.
    if isinstance(value, bool) or not isinstance(value, int):
        return False
    return 0 <= value <= UINT256_MAX


def checked_mul(*factors: int) -> int:
    """
    Multiply unsigned integers, failing if any partial product leaves the
    256-bit range.

    Raises:
        ArithmeticOverflow: On overflow.
    """
    product = 1
    for factor in factors:
        product *= factor
        if product > UINT256_MAX:
            raise ArithmeticOverflow(
                f"{' * '.join(str(f) for f in factors)} exceeds 256-bit range"
            )
    return product


def checked_add(*terms: int) -> int:
    total = sum(terms)
    if total > UINT256_MAX:
        raise ArithmeticOverflow(
            f"{' + '.join(str(t) for t in terms)} exceeds 256-bit range"
        )
    return total


# Key into the collateral count table: (borrower, collateral_asset)
CollateralKey = Tuple[str, str]

# Key into the custody table: (collateral_asset, collateral_id)
CustodyKey = Tuple[str, int]
