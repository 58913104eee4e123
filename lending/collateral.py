"""
collateral.py - Collateral Ledger and Loan Lists

The CollateralLedger is the bookkeeping half of the lending pool. It holds:

    counts    (borrower, asset) -> number of locked units (coarse guard)
    custody   (asset, unit_id)  -> borrower who locked the unit
    loans     borrower -> append-only list of Loan records

=== INDEX STABILITY ===

A loan's index is its position in the borrower's list, assigned at append
and never reassigned. Closing a loan replaces the record with a CLOSED copy
in the same slot; nothing is removed, so repayment by index stays safe.

=== ROLLBACK ===

Every mutation has an inverse touching only the same keys:

    lock          <->  release
    append_loan    ->  discard_loan

The pool registers the inverse of each entry it writes and runs them if a
later step fails, so undoing a call costs the same as applying it.
close_loan is always a call's last effect and never needs undoing.

snapshot() returns an immutable value copy of all three tables and
restore() puts one back. They copy the whole ledger, so they are for
inspection and tests, not for the pool's call path.
"""

from __future__ import annotations
from collections import defaultdict
from dataclasses import dataclass, replace
from typing import Dict, List, Optional, Tuple

from .core import (
    Loan, LoanStatus, CollateralKey, CustodyKey,
    LoanNotFound, LoanAlreadyClosed, InsufficientCollateralBalance,
)


@dataclass(frozen=True, slots=True)
class LedgerSnapshot:
    """Frozen copy of collateral ledger state."""
    counts: Tuple[Tuple[CollateralKey, int], ...]
    custody: Tuple[Tuple[CustodyKey, str], ...]
    loans: Tuple[Tuple[str, Tuple[Loan, ...]], ...]


class CollateralLedger:
    """
    Per-borrower collateral counts, per-unit custody and loan lists.

    Only the lending pool should call the mutating methods; everything else
    reads.
    """

    def __init__(self):
        self._counts: Dict[CollateralKey, int] = defaultdict(int)
        self._custody: Dict[CustodyKey, str] = {}
        self._loans: Dict[str, List[Loan]] = defaultdict(list)

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    def collateral_count(self, borrower: str, asset: str) -> int:
        return self._counts.get((borrower, asset), 0)

    def custodian_of(self, asset: str, unit_id: int) -> Optional[str]:
        """Borrower whose loan holds asset#unit_id in custody, or None."""
        return self._custody.get((asset, unit_id))

    def loan_count(self, borrower: str) -> int:
        return len(self._loans.get(borrower, ()))

    def get_loan(self, borrower: str, index: int) -> Loan:
        """
        Return loan `index` of `borrower`, open or closed.

        Raises:
            LoanNotFound: If the borrower has no loan at that index.
        """
        loans = self._loans.get(borrower, ())
        if isinstance(index, bool) or not isinstance(index, int) or not 0 <= index < len(loans):
            raise LoanNotFound(f"No loan #{index} for {borrower}")
        return loans[index]

    def get_open_loan(self, borrower: str, index: int) -> Loan:
        """
        Raises:
            LoanNotFound: If absent.
            LoanAlreadyClosed: If the loan has been settled.
        """
        loan = self.get_loan(borrower, index)
        if not loan.is_open:
            raise LoanAlreadyClosed(f"Loan #{index} for {borrower} is already closed")
        return loan

    def get_loans(self, borrower: str) -> List[Loan]:
        return list(self._loans.get(borrower, ()))

    def get_open_loans(self, borrower: str) -> List[Loan]:
        return [loan for loan in self._loans.get(borrower, ()) if loan.is_open]

    def borrowers(self) -> List[str]:
        return sorted(b for b, loans in self._loans.items() if loans)

    def custody_entries(self) -> Dict[CustodyKey, str]:
        return dict(self._custody)

    def count_entries(self) -> Dict[CollateralKey, int]:
        return {k: v for k, v in self._counts.items() if v}

    # ========================================================================
    # MUTATING
    # ========================================================================

    def lock(self, borrower: str, asset: str, unit_id: int) -> None:
        """
        Record a collateral unit entering custody for borrower.

        Raises:
            ValueError: If the unit is already in custody.
        """
        key = (asset, unit_id)
        if key in self._custody:
            raise ValueError(f"{asset}#{unit_id} already in custody for {self._custody[key]}")
        self._counts[(borrower, asset)] += 1
        self._custody[key] = borrower

    def release(self, borrower: str, asset: str, unit_id: int) -> None:
        """
        Record a collateral unit leaving custody back to borrower.

        Raises:
            InsufficientCollateralBalance: If borrower has nothing of the
                asset class locked, or the unit is not held for them.
        """
        if self._counts.get((borrower, asset), 0) == 0:
            raise InsufficientCollateralBalance(f"{borrower} has no {asset} collateral locked")
        if self._custody.get((asset, unit_id)) != borrower:
            raise InsufficientCollateralBalance(f"{asset}#{unit_id} is not held for {borrower}")
        self._counts[(borrower, asset)] -= 1
        del self._custody[(asset, unit_id)]

    def append_loan(self, loan: Loan) -> Loan:
        """
        Append a loan to its borrower's list, assigning the next index.

        Returns:
            The stored record (with index set).
        """
        loans = self._loans[loan.borrower]
        stored = replace(loan, index=len(loans))
        loans.append(stored)
        return stored

    def close_loan(self, borrower: str, index: int, closed_at: int, penalty_paid: int) -> Loan:
        """Replace an open loan with its CLOSED copy in the same slot."""
        loan = self.get_open_loan(borrower, index)
        closed = replace(loan, status=LoanStatus.CLOSED, closed_at=closed_at, penalty_paid=penalty_paid)
        self._loans[borrower][index] = closed
        return closed

    # ========================================================================
    # INVERSES (used to undo one call's entries)
    # ========================================================================

    def discard_loan(self, borrower: str, index: int) -> None:
        """
        Remove the most recently appended loan. Inverse of append_loan.

        Raises:
            ValueError: If `index` is not the last slot of borrower's list.
        """
        loans = self._loans.get(borrower)
        if not loans or index != len(loans) - 1:
            raise ValueError(f"Loan #{index} is not the last loan for {borrower}")
        loans.pop()
        if not loans:
            del self._loans[borrower]

    # ========================================================================
    # SNAPSHOT / RESTORE (read side and tests)
    # ========================================================================

    def snapshot(self) -> LedgerSnapshot:
        # Loan records are frozen, so copying the lists is a full value copy.
        return LedgerSnapshot(
            counts=tuple(sorted((k, v) for k, v in self._counts.items() if v)),
            custody=tuple(sorted(self._custody.items())),
            loans=tuple(sorted((b, tuple(ls)) for b, ls in self._loans.items() if ls)),
        )

    def restore(self, snapshot: LedgerSnapshot) -> None:
        self._counts = defaultdict(int, dict(snapshot.counts))
        self._custody = dict(snapshot.custody)
        self._loans = defaultdict(list, {b: list(ls) for b, ls in snapshot.loans})
