"""
Conformance Test Suite

This suite defines the NORMATIVE behavior of the life counter.
Any compliant implementation MUST pass these tests.

The tests are organized by invariant:
1. balance_floor.py - Token counters never go negative under any operation sequence
2. rejection_atomicity.py - A rejected operation leaves the stored record untouched
3. dual_approval.py - A token is consumed only with both parties' approval
4. refresh_idempotency.py - Maintenance applied twice equals maintenance applied once
5. serialized_writers.py - Concurrent callers never lose an update

These tests use hypothesis for property-based testing.
"""
