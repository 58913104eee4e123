"""
pool.py - Lending Pool: Loan Originator and Loan Settlement

The LendingPool is the only object that mutates lending state. It owns the
CollateralLedger and receives its collaborators by reference:

    config   ConfigView     allowlist, collateral rates, loan caps, currency
    assets   AssetRegistry  collateral ownership and transfer
    tokens   TokenLedger    loan currency balances and transfer
    clock    Clock          current time in unix seconds

Two entry points:

    request_loan(caller, collateral_asset, principal, duration, collateral_id)
        collateral caller -> pool, principal pool -> caller, loan recorded OPEN

    repay_loan(caller, loan_index)
        principal + interest + penalty caller -> pool, collateral pool -> caller,
        loan marked CLOSED

=== ATOMICITY ===

Every precondition is checked before anything changes. Effects are applied
under an _Unwind: each collateral ledger change and each completed external
transfer registers its inverse. If any later step fails, the inverses run
in reverse order and the call raises. Events are emitted only after the
last effect succeeds, and a failing subscriber never fails the call.
"""

from __future__ import annotations
from collections import Counter
from typing import Any, Callable, Dict, List, Tuple

from .core import (
    AssetRegistry, TokenLedger, ConfigView, Clock,
    Loan, LoanEvent,
    POOL_WALLET,
    LendingError, InvalidCaller, InvalidLoanTerms, MaxLoanAmountExceeded,
    UnacceptedCollateral, InsufficientCollateralBalance, NotOwner,
    InsufficientTokenBalance, TransferFailed,
    is_valid_identity, is_uint256, checked_add,
)
from .collateral import CollateralLedger
from .events import EventLog, EventHandler, ALL_EVENTS, loan_originated, loan_repaid
from .interest import RepaymentQuote, estimate, quote


class _Unwind:
    """
    Compensating-rollback record for one pool call.

    Holds the inverse of every effect applied so far: external transfers
    and the collateral ledger entries this call touched. Nothing else is
    copied, so the cost of a call does not grow with the ledger's history.
    """

    def __init__(self):
        self._compensations: List[Tuple[str, Callable[[], bool]]] = []

    def on_failure(self, description: str, compensation: Callable[[], bool]) -> None:
        """Register an inverse that reports success with its return value."""
        self._compensations.append((description, compensation))

    def on_failure_undo(self, description: str, undo: Callable[[], None]) -> None:
        """Register a bookkeeping inverse that succeeds unless it raises."""
        def compensation() -> bool:
            undo()
            return True
        self._compensations.append((description, compensation))

    def rollback(self) -> List[str]:
        """
        Undo everything, most recent first. Every inverse runs even if an
        earlier one failed.

        Returns:
            Descriptions of compensations that failed.
        """
        failed = []
        for description, compensation in reversed(self._compensations):
            try:
                ok = compensation()
            except Exception:
                ok = False
            if not ok:
                failed.append(description)
        return failed


class LendingPool:
    """
    NFT-collateralized lending pool.

    Thread Safety:
        Not thread-safe. Calls must be serialized; each runs to completion.

    Example:
        config = LendingConfig("USDC")
        config.accept_collateral("PUNKS", rate=10, max_loan_amount=5_000)
        pool = LendingPool(config, assets, assets, ManualClock(1_700_000_000))

        loan = pool.request_loan("alice", "PUNKS", 1_000, 30 * SECONDS_PER_DAY, 7)
        pool.quote_repayment("alice", loan.index).total   # 1008
        pool.repay_loan("alice", loan.index)
    """

    def __init__(
        self,
        config: ConfigView,
        assets: AssetRegistry,
        tokens: TokenLedger,
        clock: Clock,
        wallet: str = POOL_WALLET,
        verbose: bool = True,
    ):
        """
        Create a lending pool.

        Args:
            config: Configuration store (read only)
            assets: Non-fungible registry holding the collateral
            tokens: Fungible ledger of the loan currency
            clock: Time source
            wallet: Identity holding collateral in custody and the currency float
            verbose: Print one line per applied, rejected or rolled back call
        """
        if not is_valid_identity(wallet):
            raise ValueError(f"Invalid pool wallet: {wallet!r}")
        self.config = config
        self.assets = assets
        self.tokens = tokens
        self.clock = clock
        self.wallet = wallet
        self.verbose = verbose
        self.collateral = CollateralLedger()
        self.events = EventLog()

    # ========================================================================
    # READ-ONLY
    # ========================================================================

    def estimate(self, collateral_asset: str, principal: int, duration: int) -> int:
        """Interest a loan with these terms would be charged right now."""
        return estimate(self.config, collateral_asset, principal, duration)

    def get_loan(self, borrower: str, index: int) -> Loan:
        return self.collateral.get_loan(borrower, index)

    def get_loans(self, borrower: str) -> List[Loan]:
        return self.collateral.get_loans(borrower)

    def get_open_loans(self, borrower: str) -> List[Loan]:
        return self.collateral.get_open_loans(borrower)

    def collateral_count(self, borrower: str, asset: str) -> int:
        return self.collateral.collateral_count(borrower, asset)

    def quote_repayment(self, borrower: str, index: int) -> RepaymentQuote:
        """
        What repay_loan(borrower, index) would charge if called now.

        Raises:
            LoanNotFound: If absent.
            LoanAlreadyClosed: If already settled.
        """
        loan = self.collateral.get_open_loan(borrower, index)
        return quote(loan, self.clock.now())

    def available_liquidity(self) -> int:
        """Loan currency the pool can still disburse."""
        return self.tokens.balance_of(self.wallet, self.config.loan_currency())

    @property
    def event_log(self) -> List[LoanEvent]:
        return self.events.events()

    def subscribe(self, handler: EventHandler, event_type: str = ALL_EVENTS) -> None:
        """Deliver future events of `event_type` (default: all) to handler."""
        self.events.register(event_type, handler)

    def verify_custody(self) -> Dict[str, Any]:
        """
        Reconcile collateral bookkeeping against open loans and the registry.

        Checks:
        1. count(borrower, asset) equals that borrower's open loans on the asset
        2. custody(asset, id) names exactly the borrower of the open loan on it
        3. the registry shows the pool as owner of every unit in custody

        Returns:
            Dict with keys:
            - 'valid': bool - True if all checks hold
            - 'open_loans': int - Number of open loans across borrowers
            - 'discrepancies': List[Dict] - check, key, expected, actual

        Example:
            result = pool.verify_custody()
            assert result['valid'], f"Custody broken: {result['discrepancies']}"
        """
        open_loans = [
            loan
            for borrower in self.collateral.borrowers()
            for loan in self.collateral.get_open_loans(borrower)
        ]
        discrepancies = []

        expected_counts = Counter((l.borrower, l.collateral_asset) for l in open_loans)
        actual_counts = self.collateral.count_entries()
        for key in sorted(set(expected_counts) | set(actual_counts)):
            expected = expected_counts.get(key, 0)
            actual = actual_counts.get(key, 0)
            if expected != actual:
                discrepancies.append({'check': 'count', 'key': key, 'expected': expected, 'actual': actual})

        expected_custody = {(l.collateral_asset, l.collateral_id): l.borrower for l in open_loans}
        actual_custody = self.collateral.custody_entries()
        for key in sorted(set(expected_custody) | set(actual_custody)):
            expected = expected_custody.get(key)
            actual = actual_custody.get(key)
            if expected != actual:
                discrepancies.append({'check': 'custody', 'key': key, 'expected': expected, 'actual': actual})

        for asset, unit_id in sorted(actual_custody):
            owner = self.assets.owner_of(asset, unit_id)
            if owner != self.wallet:
                discrepancies.append({
                    'check': 'owner', 'key': (asset, unit_id),
                    'expected': self.wallet, 'actual': owner,
                })

        return {
            'valid': len(discrepancies) == 0,
            'open_loans': len(open_loans),
            'discrepancies': discrepancies,
        }

    # ========================================================================
    # LOAN ORIGINATOR (Mutating)
    # ========================================================================

    def request_loan(
        self,
        caller: str,
        collateral_asset: str,
        principal: int,
        duration: int,
        collateral_id: int,
    ) -> Loan:
        """
        Lock a collateral unit and disburse a loan against it.

        Args:
            caller: Borrower identity
            collateral_asset: Asset class of the collateral
            principal: Amount to borrow, in the loan currency's smallest unit
            duration: Loan length in seconds
            collateral_id: Unit of the asset class to lock

        Returns:
            The recorded OPEN loan (its index is the handle for repayment)

        Raises (checked in this order):
            InvalidCaller, UnacceptedCollateral, InvalidLoanTerms,
            MaxLoanAmountExceeded, InsufficientCollateralBalance, NotOwner,
            ArithmeticOverflow, TransferFailed

            InvalidLoanTerms is a guard this pool adds on top of the lending
            preconditions. It rejects a principal or duration that is not a
            positive int, which the preconditions alone would let through.

        A subscriber that raises on the LoanOriginated event does not make
        this call raise; see EventLog.handler_failures.
        """
        try:
            loan = self._request_loan(caller, collateral_asset, principal, duration, collateral_id)
        except LendingError as e:
            self._log_rejected("request_loan", e)
            raise

        event = loan_originated(loan)
        if self.verbose:
            print(f"✓ {event!r} interest={loan.interest} due_at={loan.due_at}")
        self._publish(event)
        return loan

    def _request_loan(
        self,
        caller: str,
        collateral_asset: str,
        principal: int,
        duration: int,
        collateral_id: int,
    ) -> Loan:
        self._require_caller(caller)
        # Acceptance first: an unconfigured asset has a cap of 0, and must
        # still report UnacceptedCollateral whatever the principal.
        if not self.config.is_accepted(collateral_asset):
            raise UnacceptedCollateral(f"Collateral {collateral_asset} is not accepted")
        if not is_uint256(principal) or principal == 0:
            raise InvalidLoanTerms(f"principal must be a positive int, got {principal!r}")
        if not is_uint256(duration) or duration == 0:
            raise InvalidLoanTerms(f"duration must be a positive int, got {duration!r}")
        cap = self.config.max_loan_amount(collateral_asset)
        if principal > cap:
            raise MaxLoanAmountExceeded(
                f"{principal} exceeds max loan amount {cap} for {collateral_asset}"
            )
        if self.assets.nft_balance_of(caller, collateral_asset) < 1:
            raise InsufficientCollateralBalance(f"{caller} holds no {collateral_asset}")
        if self.assets.owner_of(collateral_asset, collateral_id) != caller:
            raise NotOwner(f"{caller} does not own {collateral_asset}#{collateral_id}")

        now = self.clock.now()
        interest = estimate(self.config, collateral_asset, principal, duration)
        due_at = checked_add(now, duration)
        currency = self.config.loan_currency()

        ledger = self.collateral
        unwind = _Unwind()
        try:
            ledger.lock(caller, collateral_asset, collateral_id)
            unwind.on_failure_undo(
                f"unlock {collateral_asset}#{collateral_id}",
                lambda: ledger.release(caller, collateral_asset, collateral_id),
            )
            loan = ledger.append_loan(Loan(
                borrower=caller,
                collateral_asset=collateral_asset,
                collateral_id=collateral_id,
                currency=currency,
                principal=principal,
                duration=duration,
                interest=interest,
                created_at=now,
                due_at=due_at,
                index=0,
            ))
            unwind.on_failure_undo(
                f"discard loan #{loan.index} for {caller}",
                lambda: ledger.discard_loan(caller, loan.index),
            )
            self._move_collateral(unwind, collateral_asset, caller, self.wallet, collateral_id)
            self._move_tokens(unwind, currency, self.wallet, caller, principal)
        except Exception as e:
            self._rollback(unwind, "request_loan", e)
            raise
        return loan

    # ========================================================================
    # LOAN SETTLEMENT (Mutating)
    # ========================================================================

    def repay_loan(self, caller: str, loan_index: int) -> Loan:
        """
        Repay an open loan in full and reclaim its collateral.

        Charges principal + interest, plus PENALTY_RATE_PERCENT of principal
        per whole day past due_at.

        Args:
            caller: Borrower identity
            loan_index: Index of the loan in the caller's loan list

        Returns:
            The CLOSED loan record

        Raises (checked in this order):
            InvalidCaller, LoanNotFound / LoanAlreadyClosed,
            InsufficientTokenBalance, InsufficientCollateralBalance,
            ArithmeticOverflow, TransferFailed

        A subscriber that raises on the LoanRepaid event does not make this
        call raise; see EventLog.handler_failures.
        """
        try:
            closed = self._repay_loan(caller, loan_index)
        except LendingError as e:
            self._log_rejected("repay_loan", e)
            raise

        event = loan_repaid(closed)
        if self.verbose:
            print(f"✓ {event!r} penalty={closed.penalty_paid}")
        self._publish(event)
        return closed

    def _repay_loan(self, caller: str, loan_index: int) -> Loan:
        self._require_caller(caller)
        loan = self.collateral.get_open_loan(caller, loan_index)

        now = self.clock.now()
        due = quote(loan, now)
        balance = self.tokens.balance_of(caller, loan.currency)
        if balance < due.total:
            raise InsufficientTokenBalance(
                f"{caller} {loan.currency}: {balance} < {due.total} due"
            )

        asset, unit_id = loan.collateral_asset, loan.collateral_id
        if self.collateral.collateral_count(caller, asset) == 0:
            raise InsufficientCollateralBalance(f"{caller} has no {asset} collateral locked")
        if self.collateral.custodian_of(asset, unit_id) != caller:
            raise InsufficientCollateralBalance(f"{asset}#{unit_id} is not held for {caller}")

        ledger = self.collateral
        unwind = _Unwind()
        try:
            ledger.release(caller, asset, unit_id)
            unwind.on_failure_undo(
                f"relock {asset}#{unit_id}",
                lambda: ledger.lock(caller, asset, unit_id),
            )
            self._move_tokens(unwind, loan.currency, caller, self.wallet, due.total)
            self._move_collateral(unwind, asset, self.wallet, caller, unit_id)
            # Last effect: nothing after it can fail, so it needs no inverse.
            closed = ledger.close_loan(caller, loan_index, now, due.penalty)
        except Exception as e:
            self._rollback(unwind, "repay_loan", e)
            raise
        return closed

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _require_caller(self, caller: str) -> None:
        if not is_valid_identity(caller):
            raise InvalidCaller(f"Invalid caller: {caller!r}")
        if caller == self.wallet:
            raise InvalidCaller("The pool wallet cannot borrow from itself")

    def _move_collateral(self, unwind: _Unwind, asset: str, source: str, dest: str, unit_id: int) -> None:
        what = f"{asset}#{unit_id} {source}→{dest}"
        try:
            ok = self.assets.transfer_nft(asset, source, dest, unit_id)
        except Exception as e:
            raise TransferFailed(f"Collateral transfer {what} raised: {e}") from e
        if not ok:
            raise TransferFailed(f"Collateral transfer {what} failed")
        unwind.on_failure(
            f"return {asset}#{unit_id} {dest}→{source}",
            lambda: self.assets.transfer_nft(asset, dest, source, unit_id),
        )

    def _move_tokens(self, unwind: _Unwind, currency: str, source: str, dest: str, amount: int) -> None:
        what = f"{amount} {currency} {source}→{dest}"
        try:
            ok = self.tokens.transfer(currency, source, dest, amount)
        except Exception as e:
            raise TransferFailed(f"Token transfer {what} raised: {e}") from e
        if not ok:
            raise TransferFailed(f"Token transfer {what} failed")
        unwind.on_failure(
            f"refund {amount} {currency} {dest}→{source}",
            lambda: self.tokens.transfer(currency, dest, source, amount),
        )

    def _rollback(self, unwind: _Unwind, operation: str, cause: Exception) -> None:
        failed = unwind.rollback()
        if self.verbose:
            print(f"↺ ROLLBACK {operation}: {cause}")
        if failed:
            raise LendingError(
                f"{operation} rollback incomplete, compensations failed: {', '.join(failed)}"
            ) from cause

    def _publish(self, event: LoanEvent) -> None:
        # The call has committed; a failing subscriber must not undo or mask that.
        for failure in self.events.emit(event):
            if self.verbose:
                print(f"✗ HANDLER {failure.handler} failed on {event.event_type}: "
                      f"{type(failure.error).__name__}: {failure.error}")

    def _log_rejected(self, operation: str, error: LendingError) -> None:
        if self.verbose:
            print(f"✗ REJECTED {operation}: {type(error).__name__}: {error}")
