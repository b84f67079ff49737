"""
Balance Floor Conformance Tests

INVARIANT: Token counters are never negative, and the ledger invariants hold
after every operation.

    ∀ operation sequences S, ∀ prefixes P of S:
        state(P).current_tokens ≥ 0 for both parties
        verify_invariants(state(P))['valid']

Consumption floors at 0 and the booster lapse floors at 0; a share larger
than the balance is rejected rather than clamped.
"""

from hypothesis import given, settings
from hypothesis import strategies as st
from datetime import datetime

from lifecounter import (
    LifeCounter, MemoryStore, PARTY_A, PARTY_B, PARTIES, verify_invariants,
)

from tests.fakes import FakeClock, UTC


parties = st.sampled_from(PARTIES + ("user3",))

operations = st.one_of(
    st.tuples(st.just("request"), parties, parties),
    st.tuples(st.just("approve"), parties, st.integers(min_value=0, max_value=5)),
    st.tuples(st.just("deny"), parties, st.integers(min_value=0, max_value=5)),
    st.tuples(st.just("share"), parties, parties, st.integers(min_value=-2, max_value=12)),
    st.tuples(st.just("booster"), parties),
    st.tuples(st.just("advance"), st.integers(min_value=0, max_value=20 * 24)),
)


def _pending(counter):
    state = counter.read(PARTY_A).state
    return [r.id for account in state for r in account.pending_requests]


def _run(counter, clock, op):
    kind = op[0]
    if kind == "request":
        counter.request_consumption(op[1], op[2])
    elif kind in ("approve", "deny"):
        pending = _pending(counter)
        request_id = pending[op[2] % len(pending)] if pending else "missing"
        getattr(counter, kind)(op[1], request_id)
    elif kind == "share":
        counter.share(op[1], op[2], op[3])
    elif kind == "booster":
        counter.activate_booster(op[1])
    else:
        clock.advance(hours=op[1])


class TestBalanceFloorProperties:
    """Property-based balance floor tests."""

    @given(st.lists(operations, min_size=1, max_size=40))
    @settings(max_examples=60, deadline=None)
    def test_random_sequences_keep_invariants(self, ops):
        """
        PROPERTY: No sequence of valid or invalid calls breaks the invariants.
        """
        clock = FakeClock(datetime(2025, 1, 15, 9, 0, tzinfo=UTC))
        counter = LifeCounter(MemoryStore(clock=clock), clock=clock, verbose=False)

        for op in ops:
            _run(counter, clock, op)
            state = counter.store.load()
            for account in state:
                assert account.current_tokens >= 0
                assert account.shared_tokens >= 0
            result = verify_invariants(state)
            assert result['valid'], result['violations']

    @given(st.integers(min_value=1, max_value=30))
    @settings(max_examples=30, deadline=None)
    def test_consumption_past_zero_floors(self, approvals):
        """
        PROPERTY: Consuming more tokens than the balance leaves it at 0.
        """
        clock = FakeClock(datetime(2025, 1, 15, 9, 0, tzinfo=UTC))
        counter = LifeCounter(MemoryStore(clock=clock), clock=clock, verbose=False)

        for _ in range(approvals):
            request_id = counter.request_consumption(PARTY_A, PARTY_A).request_id
            counter.approve(PARTY_A, request_id)

        assert counter.read(PARTY_A).state.account(PARTY_A).current_tokens == max(0, 5 - approvals)

    @given(st.integers(min_value=0, max_value=5))
    @settings(max_examples=20, deadline=None)
    def test_lapse_after_spending_floors(self, kept):
        """
        PROPERTY: Sharing bonus tokens away before expiry never drives B negative at lapse.
        """
        clock = FakeClock(datetime(2025, 1, 2, tzinfo=UTC))
        counter = LifeCounter(MemoryStore(clock=clock), clock=clock, verbose=False)
        counter.activate_booster(PARTY_B)
        counter.share(PARTY_B, PARTY_A, 15 - kept)

        clock.advance(days=7)
        account = counter.read(PARTY_B).state.account(PARTY_B)

        assert account.current_tokens == 0
        assert account.booster_active is False
