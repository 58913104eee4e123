"""
Idempotency Conformance Tests

INVARIANT: Settlement happens at most once.

    ∀ loan L:
        repay(L) succeeds at most once; later attempts fail and change nothing
        each successful call emits exactly one event
        a collateral unit backs at most one open loan
"""

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from lending import (
    LoanNotFound, LoanAlreadyClosed, NotOwner, LendingError,
    SECONDS_PER_DAY, loan_originated,
)

from tests.scenario import PUNKS, THIRTY_DAYS, make_world, snapshot_state


class TestIdempotencyProperties:

    @given(st.integers(min_value=2, max_value=6), st.integers(min_value=0, max_value=60))
    @settings(max_examples=30)
    def test_repeated_repay(self, attempts, days_later):
        pool, assets, clock = make_world()
        loan = pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        clock.advance(days_later * SECONDS_PER_DAY)
        pool.repay_loan("alice", loan.index)
        after_first = snapshot_state(pool, assets)

        for _ in range(attempts - 1):
            with pytest.raises(LoanAlreadyClosed):
                pool.repay_loan("alice", loan.index)
        assert snapshot_state(pool, assets) == after_first
        assert len(pool.event_log) == 2

    @given(st.integers(min_value=2, max_value=6))
    @settings(max_examples=20)
    def test_unit_backs_one_open_loan(self, attempts):
        pool, _, _ = make_world()
        pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        for _ in range(attempts - 1):
            with pytest.raises(NotOwner):
                pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        assert len(pool.get_loans("alice")) == 1


class TestIdempotencyExamples:

    def test_closed_loan_reports_not_found_family(self):
        pool, _, _ = make_world()
        pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        pool.repay_loan("alice", 0)
        with pytest.raises(LoanNotFound):
            pool.repay_loan("alice", 0)

    def test_relock_after_repay_is_a_new_loan(self):
        pool, _, _ = make_world()
        pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        pool.repay_loan("alice", 0)
        again = pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        assert again.index == 1
        assert pool.collateral_count("alice", PUNKS) == 1

    def test_event_log_rejects_replayed_event(self):
        pool, _, _ = make_world()
        loan = pool.request_loan("alice", PUNKS, 1_000, THIRTY_DAYS, 1)
        with pytest.raises(LendingError, match="already emitted"):
            pool.events.emit(loan_originated(loan))
        assert len(pool.event_log) == 1
