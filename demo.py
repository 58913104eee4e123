#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Borrowing Against an NFT, Step by Step

A walkthrough of the lending pool. Each step builds on the previous one.
Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Setup        - Host ledger, configuration, the pool
  4-6:  Borrowing    - Estimates, rejections, a loan
  7-9:  Settlement   - Quotes, on-time and late repayment
  10-11: Guarantees  - Rollback on a failed transfer, custody reconciliation

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
import sys

from lending import (
    AssetLedger, LendingConfig, LendingPool, ManualClock,
    POOL_WALLET, SECONDS_PER_DAY,
    LendingError, TransferFailed,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    start_time: int = 1_735_722_000      # 2025-01-01 09:00 UTC
    currency: str = "USDC"

    # Collateral classes
    collection: str = "PUNKS"
    collection_rate: int = 10            # % per year
    collection_cap: int = 5_000
    unlisted_collection: str = "DOODLES"

    # Funding
    pool_float: int = 1_000_000
    alice_funds: int = 500

    # The loan
    principal: int = 1_000
    duration_days: int = 30
    days_late: int = 3


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


def wait_for_enter():
    """Pause for user input unless in quick mode."""
    if not QUICK_MODE:
        input("\n[Press Enter to continue...]")


def step_header(number: int, title: str, objective: str):
    """Print a step header with learning objective."""
    print(f"\n{'='*70}")
    print(f"STEP {number}: {title}")
    print(f"{'='*70}")
    print(f"\nObjective: {objective}\n")


def section_header(text: str):
    """Print a section header within a step."""
    print(f"\n--- {text} ---\n")


def show_balances(assets: AssetLedger):
    for wallet in sorted(assets.registered_wallets):
        print(f"  {wallet:14} {assets.balance_of(wallet, CONFIG.currency):>10,} {CONFIG.currency}"
              f"   {CONFIG.collection}: {assets.units_of(wallet, CONFIG.collection)}")


# ============================================================================
# PHASE 1: SETUP (Steps 1-3)
# ============================================================================

def step_01_host_ledger():
    step_header(1, "The Host Ledger",
        "Create the chain the pool lives on: wallets, a currency and NFTs.")

    print("""
    The pool never owns balances itself. It moves them through two
    collaborators: a fungible token ledger and a non-fungible registry.
    AssetLedger implements both, in memory.
    """)

    assets = AssetLedger("chain", verbose=True)
    for wallet in (POOL_WALLET, "alice"):
        assets.register_wallet(wallet)
    assets.mint(CONFIG.currency, POOL_WALLET, CONFIG.pool_float)
    assets.mint(CONFIG.currency, "alice", CONFIG.alice_funds)
    assets.mint_nft(CONFIG.collection, "alice", 7)
    assets.mint_nft(CONFIG.collection, "alice", 8)
    assets.mint_nft(CONFIG.unlisted_collection, "alice", 1)

    section_header("Balances")
    show_balances(assets)
    return assets


def step_02_configuration():
    step_header(2, "Configuration",
        "Decide which collections are accepted, at what rate, up to what amount.")

    config = LendingConfig(CONFIG.currency)
    config.accept_collateral(CONFIG.collection, rate=CONFIG.collection_rate,
                             max_loan_amount=CONFIG.collection_cap)

    print(f">>> config = {config!r}")
    print(f"    rate({CONFIG.collection}) = {config.collateral_rate(CONFIG.collection)}%")
    print(f"    cap({CONFIG.collection})  = {config.max_loan_amount(CONFIG.collection):,}")
    print(f"    cap({CONFIG.unlisted_collection}) = {config.max_loan_amount(CONFIG.unlisted_collection)}"
          "  (never configured)")
    return config


def step_03_pool(config, assets):
    step_header(3, "The Pool",
        "Wire the pool to its collaborators and a clock that only moves forward.")

    clock = ManualClock(CONFIG.start_time)
    pool = LendingPool(config, assets, assets, clock, verbose=True)
    print(f"Pool wallet:         {pool.wallet}")
    print(f"Available liquidity: {pool.available_liquidity():,} {CONFIG.currency}")
    print(f"Current time:        {clock.now()}")
    return pool, clock


# ============================================================================
# PHASE 2: BORROWING (Steps 4-6)
# ============================================================================

def step_04_estimate(pool):
    step_header(4, "Estimate",
        "Interest is fixed at origination: principal * rate * duration / year.")

    duration = CONFIG.duration_days * SECONDS_PER_DAY
    interest = pool.estimate(CONFIG.collection, CONFIG.principal, duration)
    print(f"  {CONFIG.principal} * {CONFIG.collection_rate} * {duration} // (100 * 31536000) = {interest}")
    print("  Integer arithmetic, floored: the borrower never pays a fraction.")


def step_05_rejections(pool, assets):
    step_header(5, "Rejected Requests",
        "Every precondition fails with its own error and changes nothing.")

    duration = CONFIG.duration_days * SECONDS_PER_DAY
    attempts = [
        ("unlisted collection", ("alice", CONFIG.unlisted_collection, CONFIG.principal, duration, 1)),
        ("over the cap", ("alice", CONFIG.collection, CONFIG.collection_cap + 1, duration, 7)),
        ("someone else's NFT", ("alice", CONFIG.collection, CONFIG.principal, duration, 99)),
        ("zero duration", ("alice", CONFIG.collection, CONFIG.principal, 0, 7)),
    ]
    for label, args in attempts:
        section_header(label)
        try:
            pool.request_loan(*args)
        except LendingError as e:
            print(f"  -> {type(e).__name__}")

    section_header("Nothing moved")
    show_balances(assets)


def step_06_borrow(pool, assets):
    step_header(6, "Borrow",
        "Lock PUNKS#7 in custody and receive the principal, in one atomic call.")

    loan = pool.request_loan("alice", CONFIG.collection, CONFIG.principal,
                             CONFIG.duration_days * SECONDS_PER_DAY, 7)
    section_header("Loan record")
    print(f"  {loan!r}")
    print(f"  interest={loan.interest} due_at={loan.due_at}")
    section_header("Balances")
    show_balances(assets)
    return loan


# ============================================================================
# PHASE 3: SETTLEMENT (Steps 7-9)
# ============================================================================

def step_07_quote(pool, clock, loan):
    step_header(7, "Quotes Over Time",
        "Early or on time costs principal + interest; each whole day late adds 5%.")

    for label, at in [
        ("tomorrow", loan.created_at + SECONDS_PER_DAY),
        ("on the due date", loan.due_at),
        ("23h59m late", loan.due_at + SECONDS_PER_DAY - 1),
        (f"{CONFIG.days_late} days late", loan.due_at + CONFIG.days_late * SECONDS_PER_DAY),
    ]:
        clock.advance_to(at)
        q = pool.quote_repayment("alice", loan.index)
        print(f"  {label:18} total={q.total:>6} (interest {q.interest}, penalty {q.penalty})")


def step_08_short_of_funds(pool, assets, loan):
    step_header(8, "Not Enough to Repay",
        "Repayment is all or nothing. A shortfall is refused up front.")

    assets.transfer(CONFIG.currency, "alice", POOL_WALLET, assets.balance_of("alice", CONFIG.currency))
    try:
        pool.repay_loan("alice", loan.index)
    except LendingError as e:
        print(f"  -> {type(e).__name__}")
    print(f"  {CONFIG.collection}#7 still owned by: {assets.owner_of(CONFIG.collection, 7)}")

    # top alice back up for the next step
    assets.transfer(CONFIG.currency, POOL_WALLET, "alice", CONFIG.alice_funds + CONFIG.principal)


def step_09_repay(pool, assets, loan):
    step_header(9, "Late Repayment",
        "Pay principal + interest + penalty, reclaim the collateral.")

    closed = pool.repay_loan("alice", loan.index)
    print(f"  {closed!r}")
    print(f"  penalty paid: {closed.penalty_paid}")
    section_header("Balances")
    show_balances(assets)

    section_header("Repaying twice")
    try:
        pool.repay_loan("alice", loan.index)
    except LendingError as e:
        print(f"  -> {type(e).__name__}")


# ============================================================================
# PHASE 4: GUARANTEES (Steps 10-11)
# ============================================================================

def step_10_rollback(pool, assets):
    step_header(10, "Rollback",
        "If the second transfer fails, the first is undone before the error surfaces.")

    # Drain the pool so disbursal fails after the NFT has moved.
    float_left = pool.available_liquidity()
    assets.transfer(CONFIG.currency, POOL_WALLET, "alice", float_left)
    try:
        pool.request_loan("alice", CONFIG.collection, CONFIG.principal, SECONDS_PER_DAY, 8)
    except TransferFailed as e:
        print(f"  -> TransferFailed: {e}")
    print(f"  {CONFIG.collection}#8 owned by: {assets.owner_of(CONFIG.collection, 8)}")
    print(f"  loans recorded: {len(pool.get_loans('alice'))}")
    assets.transfer(CONFIG.currency, "alice", POOL_WALLET, float_left)


def step_11_reconcile(pool):
    step_header(11, "Custody Reconciliation",
        "Bookkeeping, open loans and the registry always agree.")

    result = pool.verify_custody()
    print(f"  valid:         {result['valid']}")
    print(f"  open loans:    {result['open_loans']}")
    print(f"  discrepancies: {result['discrepancies']}")

    section_header("Event log")
    for event in pool.event_log:
        print(f"  {event.event_id}  {event!r}")


# ============================================================================
# MAIN
# ============================================================================

def main():
    print("=" * 70)
    print("       NFT-COLLATERALIZED LENDING: INTERACTIVE TUTORIAL")
    print("=" * 70)
    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    assets = step_01_host_ledger()
    wait_for_enter()

    config = step_02_configuration()
    wait_for_enter()

    pool, clock = step_03_pool(config, assets)
    wait_for_enter()

    step_04_estimate(pool)
    wait_for_enter()

    step_05_rejections(pool, assets)
    wait_for_enter()

    loan = step_06_borrow(pool, assets)
    wait_for_enter()

    step_07_quote(pool, clock, loan)
    wait_for_enter()

    step_08_short_of_funds(pool, assets, loan)
    wait_for_enter()

    step_09_repay(pool, assets, loan)
    wait_for_enter()

    step_10_rollback(pool, assets)
    wait_for_enter()

    step_11_reconcile(pool)

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

      - The pool only moves value through its collaborators
      - Interest is fixed at origination, penalties accrue per whole day late
      - Every failure is all-or-nothing, including failed transfers
      - A loan index is a stable handle; settlement happens once

    Next steps:
      - See lending/pool.py for the request and repayment flow
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
