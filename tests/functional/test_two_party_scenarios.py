"""
test_two_party_scenarios.py - End-to-end scenarios for the life counter

Tests complete multi-step flows through LifeCounter:
- A reports B's use, both confirm
- A month of use, sharing and the refresh
- The booster window from activation to lapse
- Persistence across a restart with JsonFileStore
"""

import json
from datetime import datetime

from lifecounter import (
    LifeCounter, MemoryStore, JsonFileStore, NotificationHub, ALL_KINDS,
    PARTY_A, PARTY_B, verify_invariants,
    REQUEST_CREATED, TOKEN_CONSUMED, BOOSTER_ACTIVATED,
)

from tests.fakes import FakeClock, UTC


class TestConsumptionHandshake:
    """A asks, B confirms, A confirms."""

    def test_cross_request_consumes_from_target(self, counter, received):
        request = counter.request_consumption(PARTY_A, PARTY_B)
        request_id = request.request_id

        # B sees the request in its own list
        view = counter.view(PARTY_B)
        assert [r["id"] for r in view[PARTY_B]["pendingRequests"]] == [request_id]
        assert view[PARTY_B]["pendingRequests"][0]["requesterName"] == "Saumitr"

        partial = counter.approve(PARTY_B, request_id)
        assert partial.applied
        assert partial.state.account(PARTY_B).current_tokens == 10

        final = counter.approve(PARTY_A, request_id)
        assert final.state.account(PARTY_B).current_tokens == 9
        assert final.state.account(PARTY_A).current_tokens == 5
        assert final.state.account(PARTY_B).pending_requests == ()

        assert [n.kind for n in received] == [REQUEST_CREATED, TOKEN_CONSUMED]
        assert received[-1].payload["userId"] == PARTY_B
        assert received[-1].payload["currentTokens"] == 9

    def test_b_reports_own_use(self, counter):
        request_id = counter.request_consumption(PARTY_B, PARTY_B).request_id
        result = counter.approve(PARTY_B, request_id)
        assert result.state.account(PARTY_B).current_tokens == 9

    def test_declined_then_asked_again(self, counter):
        first = counter.request_consumption(PARTY_B, PARTY_A).request_id
        counter.deny(PARTY_A, first)
        second = counter.request_consumption(PARTY_B, PARTY_A).request_id
        counter.approve(PARTY_A, second)
        result = counter.approve(PARTY_B, second)

        assert result.state.account(PARTY_A).current_tokens == 4


class TestMonthLifecycle:
    """Use, share and refresh across a month boundary."""

    def test_month_of_use_then_refresh(self, counter, clock):
        for _ in range(3):
            request_id = counter.request_consumption(PARTY_A, PARTY_A).request_id
            counter.approve(PARTY_A, request_id)
        counter.share(PARTY_A, PARTY_B, 2)
        leftover = counter.request_consumption(PARTY_B, PARTY_A).request_id

        state = counter.read(PARTY_A).state
        assert state.account(PARTY_A).current_tokens == 0
        assert state.account(PARTY_B).shared_tokens == 2
        assert not counter.share(PARTY_A, PARTY_B, 1).applied

        clock.set(datetime(2025, 2, 1, 0, 0, 1, tzinfo=UTC))
        state = counter.read(PARTY_B).state

        assert state.account(PARTY_A).current_tokens == 5
        assert state.account(PARTY_B).current_tokens == 10
        assert state.account(PARTY_A).pending_requests == ()
        assert state.account(PARTY_B).shared_tokens == 2
        assert not counter.approve(PARTY_A, leftover).applied

    def test_year_end_refresh(self):
        clock = FakeClock(datetime(2024, 12, 31, 23, 0, tzinfo=UTC))
        counter = LifeCounter(MemoryStore(clock=clock), clock=clock, verbose=False)
        counter.share(PARTY_B, PARTY_A, 10)

        clock.advance(hours=2)
        assert counter.read(PARTY_B).state.account(PARTY_B).current_tokens == 10


class TestBoosterLifecycle:
    """Activation, use during the window, lapse and reactivation."""

    def test_booster_window(self, counter, clock, received):
        counter.activate_booster(PARTY_B)
        assert counter.view(PARTY_B)[PARTY_B]["boosterDaysLeft"] == 7

        for _ in range(2):
            clock.advance(days=1)
            request_id = counter.request_consumption(PARTY_A, PARTY_B).request_id
            counter.approve(PARTY_B, request_id)
            counter.approve(PARTY_A, request_id)

        account = counter.read(PARTY_B).state.account(PARTY_B)
        assert account.current_tokens == 13
        assert account.booster_noes == 3
        assert counter.view(PARTY_B)[PARTY_B]["boosterDaysLeft"] == 5

        clock.advance(days=5)
        account = counter.read(PARTY_B).state.account(PARTY_B)
        assert account.current_tokens == 10
        assert account.booster_active is False
        assert "boosterDaysLeft" not in counter.view(PARTY_B)[PARTY_B]

        assert counter.activate_booster(PARTY_B).applied
        assert received[0].kind == BOOSTER_ACTIVATED
        assert received[-1].kind == BOOSTER_ACTIVATED

    def test_bonus_used_up_ends_booster_early(self, counter):
        counter.activate_booster(PARTY_B)
        for _ in range(5):
            request_id = counter.request_consumption(PARTY_B, PARTY_B).request_id
            counter.approve(PARTY_B, request_id)

        account = counter.read(PARTY_B).state.account(PARTY_B)
        assert account.current_tokens == 10
        assert account.booster_active is False
        assert counter.activate_booster(PARTY_B).applied

    def test_sharing_during_booster_does_not_count_against_noes(self, counter, clock):
        counter.activate_booster(PARTY_B)
        counter.share(PARTY_B, PARTY_A, 12)

        clock.advance(days=7)
        account = counter.read(PARTY_B).state.account(PARTY_B)
        assert account.current_tokens == 0


class TestPersistenceAcrossRestart:
    """A new LifeCounter over the same file picks up where the last left off."""

    def test_restart_keeps_everything(self, tmp_path):
        path = tmp_path / "data" / "lives.json"
        clock = FakeClock(datetime(2025, 3, 10, 12, 0, tzinfo=UTC))

        first = LifeCounter(JsonFileStore(path, clock=clock), clock=clock, verbose=False)
        request_id = first.request_consumption(PARTY_A, PARTY_B).request_id
        first.approve(PARTY_B, request_id)
        first.share(PARTY_B, PARTY_A, 3)
        first.activate_booster(PARTY_B)

        clock.advance(hours=5)
        got = []
        hub = NotificationHub(verbose=False)
        hub.subscribe(ALL_KINDS, got.append)
        second = LifeCounter(JsonFileStore(path, clock=clock), hub=hub, clock=clock, verbose=False)

        result = second.approve(PARTY_A, request_id)
        state = result.state
        assert result.notification.kind == TOKEN_CONSUMED
        assert state.account(PARTY_B).current_tokens == 11
        assert state.account(PARTY_B).booster_noes == 4
        assert state.account(PARTY_A).shared_tokens == 3
        assert verify_invariants(state)['valid']
        assert [n.kind for n in got] == [TOKEN_CONSUMED]

    def test_file_is_plain_json(self, file_counter, file_store):
        file_counter.share(PARTY_A, PARTY_B, 1)
        data = json.loads(file_store.path.read_text(encoding="utf-8"))

        assert data[PARTY_A]["currentTokens"] == 4
        assert data[PARTY_B]["sharedTokens"] == 1
        assert data[PARTY_B]["boosterActive"] is False

    def test_reads_record_written_by_older_server(self, tmp_path, clock):
        path = tmp_path / "lives.json"
        path.write_text(json.dumps({
            PARTY_A: {
                "name": "Saumitr", "currentLives": 2, "maxLives": 5,
                "lastRefresh": "2025-01-02T08:00:00.000Z", "pendingRequests": [],
                "sharedLives": 1,
            },
            PARTY_B: {
                "name": "Anushka", "currentLives": 7, "maxLives": 10,
                "lastRefresh": "2025-01-02T08:00:00.000Z", "pendingRequests": [],
                "sharedLives": 0, "boosterActive": False, "boosterStart": None,
                "boosterNoes": 0,
            },
        }), encoding="utf-8")

        counter = LifeCounter(JsonFileStore(path, clock=clock), clock=clock, verbose=False)
        result = counter.share(PARTY_A, PARTY_B, 2)

        assert result.state.account(PARTY_A).current_tokens == 0
        rewritten = json.loads(path.read_text(encoding="utf-8"))
        assert "currentLives" not in rewritten[PARTY_A]
        assert rewritten[PARTY_A]["currentTokens"] == 0
