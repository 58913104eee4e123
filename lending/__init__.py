"""
lending - Collateralized NFT Lending Ledger

Lock a non-fungible unit as collateral, borrow the loan currency against it,
repay principal + interest (+ overdue penalty) to reclaim it.

Usage:
    from lending import (
        AssetLedger, LendingConfig, LendingPool, ManualClock,
        POOL_WALLET, SECONDS_PER_DAY,
    )

    assets = AssetLedger("chain")
    assets.register_wallet("alice")
    assets.register_wallet(POOL_WALLET)
    assets.mint("USDC", POOL_WALLET, 1_000_000)
    assets.mint_nft("PUNKS", "alice", 7)

    config = LendingConfig("USDC")
    config.accept_collateral("PUNKS", rate=10, max_loan_amount=5_000)

    clock = ManualClock(1_700_000_000)
    pool = LendingPool(config, assets, assets, clock)

    loan = pool.request_loan("alice", "PUNKS", 1_000, 30 * SECONDS_PER_DAY, 7)
    clock.advance(30 * SECONDS_PER_DAY)
    pool.repay_loan("alice", loan.index)     # charges 1008, returns PUNKS#7
"""

# Core types
from .core import (
    AssetRegistry,
    TokenLedger,
    ConfigView,
    Clock,
    Loan,
    LoanStatus,
    LoanEvent,
    LendingError,
    InvalidCaller,
    InvalidLoanTerms,
    MaxLoanAmountExceeded,
    UnacceptedCollateral,
    InsufficientCollateralBalance,
    NotOwner,
    LoanNotFound,
    LoanAlreadyClosed,
    InsufficientTokenBalance,
    TransferFailed,
    ArithmeticOverflow,
    SECONDS_PER_DAY,
    SECONDS_PER_YEAR,
    PENALTY_RATE_PERCENT,
    UINT256_MAX,
    NULL_ADDRESS,
    POOL_WALLET,
    EVENT_LOAN_ORIGINATED,
    EVENT_LOAN_REPAID,
)

# Configuration and clocks
from .config import LendingConfig, ManualClock, SystemClock

# Rate/Interest calculator
from .interest import (
    RepaymentQuote,
    calculate_interest,
    calculate_days_overdue,
    calculate_penalty,
    estimate,
    quote,
)

# Collateral ledger
from .collateral import CollateralLedger, LedgerSnapshot

# Events
from .events import EventLog, HandlerFailure, ALL_EVENTS, loan_originated, loan_repaid

# Host ledger (reference collaborators)
from .assets import AssetLedger, Transfer

# Pool
from .pool import LendingPool

__all__ = [
    # Core
    'AssetRegistry', 'TokenLedger', 'ConfigView', 'Clock',
    'Loan', 'LoanStatus', 'LoanEvent',
    'LendingError', 'InvalidCaller', 'InvalidLoanTerms', 'MaxLoanAmountExceeded',
    'UnacceptedCollateral', 'InsufficientCollateralBalance', 'NotOwner',
    'LoanNotFound', 'LoanAlreadyClosed', 'InsufficientTokenBalance',
    'TransferFailed', 'ArithmeticOverflow',
    'SECONDS_PER_DAY', 'SECONDS_PER_YEAR', 'PENALTY_RATE_PERCENT',
    'UINT256_MAX', 'NULL_ADDRESS', 'POOL_WALLET',
    'EVENT_LOAN_ORIGINATED', 'EVENT_LOAN_REPAID',
    # Config
    'LendingConfig', 'ManualClock', 'SystemClock',
    # Interest
    'RepaymentQuote', 'calculate_interest', 'calculate_days_overdue',
    'calculate_penalty', 'estimate', 'quote',
    # Collateral
    'CollateralLedger', 'LedgerSnapshot',
    # Events
    'EventLog', 'HandlerFailure', 'ALL_EVENTS', 'loan_originated', 'loan_repaid',
    # Assets
    'AssetLedger', 'Transfer',
    # Pool
    'LendingPool',
]
