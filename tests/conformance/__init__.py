"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the lending pool.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. atomicity.py - A failed operation changes nothing
2. invariants.py - Non-negative positions, additive deposits, account isolation
3. interest_schedule.py - Whole-period simple interest, floored
4. read_idempotency.py - Reads are side-effect free
5. conservation.py - Tokens are neither created nor destroyed by the pool
6. serialization.py - Concurrent operations behave as some serial order

These tests use hypothesis for property-based testing.
"""
