"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - All-or-nothing request and repayment
2. conservation.py - Currency supply, collateral ownership, pool accounting
3. determinism.py - Reproducible behavior and content-addressed event ids
4. idempotency.py - Settlement at most once, one open loan per unit
5. temporal.py - Interest, due dates, penalties and refusals over time

These tests use hypothesis for property-based testing.
"""
