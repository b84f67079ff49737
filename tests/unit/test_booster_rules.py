"""
Tests for the booster window in rules.py

Tests:
- activate_booster() grants +5 tokens and 5 noes, party B only
- maintain_booster_lapse() claws back unused noes after 7 days
- Reactivation after a lapse
"""

import pytest
from datetime import timedelta

from lifecounter import (
    PARTY_A, PARTY_B, BOOSTER_BONUS,
    Forbidden, AlreadyActive,
)
from lifecounter.rules import activate_booster, maintain_booster_lapse
from lifecounter.notifications import BOOSTER_ACTIVATED

from tests.fakes import adjust


class TestActivateBooster:

    def test_grants_bonus(self, fresh_state, start_time):
        result = activate_booster(fresh_state, PARTY_B, start_time)
        account = result.state.account(PARTY_B)

        assert account.current_tokens == 10 + BOOSTER_BONUS
        assert account.booster_active is True
        assert account.booster_start == start_time
        assert account.booster_noes == BOOSTER_BONUS

    def test_adds_to_depleted_balance(self, fresh_state, start_time):
        state = adjust(fresh_state, PARTY_B, current_tokens=2)
        account = activate_booster(state, PARTY_B, start_time).state.account(PARTY_B)
        assert account.current_tokens == 7

    def test_notification(self, fresh_state, start_time):
        result = activate_booster(fresh_state, PARTY_B, start_time)
        assert result.notification.kind == BOOSTER_ACTIVATED
        assert result.notification.payload == {
            "userId": PARTY_B,
            "currentTokens": 15,
            "boosterNoes": 5,
        }

    def test_party_a_forbidden(self, fresh_state, start_time):
        with pytest.raises(Forbidden):
            activate_booster(fresh_state, PARTY_A, start_time)

    def test_unknown_party_forbidden(self, fresh_state, start_time):
        with pytest.raises(Forbidden):
            activate_booster(fresh_state, "user3", start_time)

    def test_already_active(self, fresh_state, start_time):
        state = activate_booster(fresh_state, PARTY_B, start_time).state
        with pytest.raises(AlreadyActive):
            activate_booster(state, PARTY_B, start_time + timedelta(days=6, hours=23))

    def test_reactivate_after_expiry(self, fresh_state, start_time):
        state = activate_booster(fresh_state, PARTY_B, start_time).state
        later = start_time + timedelta(days=7)
        account = activate_booster(state, PARTY_B, later).state.account(PARTY_B)

        # lapse takes 5 back (15 -> 10), activation adds 5
        assert account.current_tokens == 15
        assert account.booster_start == later
        assert account.booster_noes == 5

    def test_reactivate_after_noes_used_up(self, fresh_state, start_time):
        state = adjust(fresh_state, PARTY_B, current_tokens=10, booster_active=False,
                       booster_start=None, booster_noes=0)
        account = activate_booster(state, PARTY_B, start_time).state.account(PARTY_B)
        assert account.booster_active is True


class TestBoosterLapse:

    def test_no_op_while_inactive(self, fresh_state, start_time):
        result = maintain_booster_lapse(fresh_state, start_time + timedelta(days=30))
        assert not result.changed(fresh_state)

    def test_no_op_inside_window(self, fresh_state, start_time):
        state = activate_booster(fresh_state, PARTY_B, start_time).state
        result = maintain_booster_lapse(state, start_time + timedelta(days=6, hours=23))
        assert not result.changed(state)

    def test_claws_back_unused_noes(self, fresh_state, start_time):
        state = adjust(fresh_state, PARTY_B, current_tokens=12, booster_active=True,
                       booster_start=start_time, booster_noes=3)
        account = maintain_booster_lapse(state, start_time + timedelta(days=7)).state.account(PARTY_B)

        assert account.current_tokens == 9
        assert account.booster_active is False
        assert account.booster_start is None
        assert account.booster_noes == 0

    def test_clawback_floors_at_zero(self, fresh_state, start_time):
        state = adjust(fresh_state, PARTY_B, current_tokens=1, booster_active=True,
                       booster_start=start_time, booster_noes=4)
        account = maintain_booster_lapse(state, start_time + timedelta(days=8)).state.account(PARTY_B)
        assert account.current_tokens == 0

    def test_lapse_has_no_notification(self, fresh_state, start_time):
        state = activate_booster(fresh_state, PARTY_B, start_time).state
        assert maintain_booster_lapse(state, start_time + timedelta(days=7)).notification is None
