#!/usr/bin/env python3
"""
demo.py - Interactive Tutorial: Learn the Life Counter Step by Step

This is a pedagogical demonstration of how the two-party life counter works.
Each step builds on the previous one. Press Enter to advance.

WHAT YOU'LL LEARN:
  1-3:  Foundation     - The default ledger, parties, reading and viewing
  4-6:  Consumption    - Requests, the two-sided handshake, denial
  7-8:  Sharing        - Transfers and rejected operations
  9-10: Time           - Monthly refresh, the 7-day booster
  11:   Persistence    - JSON file store, restart, notifications

Run:
    python demo.py           # Interactive mode (press Enter for each step)
    python demo.py --quick   # Run all steps without pausing
"""

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path
import sys
import tempfile

from lifecounter import (
    LifeCounter, LifeCounterConfig, MemoryStore, NotificationHub, Notification,
    PARTY_A, PARTY_B, ALL_KINDS, ExecuteResult,
    verify_invariants,
)


# ============================================================================
# CONFIGURATION
# ============================================================================

@dataclass
class DemoConfig:
    """Configuration for the tutorial. Modify these to experiment."""
    # Mid-month, so the first steps never cross a refresh
    start_time: datetime = datetime(2025, 1, 15, 9, 0, 0, tzinfo=timezone.utc)

    share_amount: int = 2
    oversized_share: int = 50


CONFIG = DemoConfig()

# Global state for interactive mode
QUICK_MODE = "--quick" in sys.argv


class DemoClock:
    """Clock the tutorial moves forward by hand."""

    def __init__(self, start: datetime):
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


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


def print_balances(counter: LifeCounter):
    state = counter.read(PARTY_A).state
    for account in state:
        name = counter.name_of(account.party_id)
        line = (f"  {name:<10} ({account.party_id}): {account.current_tokens}/{account.max_tokens} tokens, "
                f"shared={account.shared_tokens}, pending={len(account.pending_requests)}")
        if account.has_booster:
            line += f", booster={'on' if account.booster_active else 'off'} ({account.booster_noes} noes)"
        print(line)


# ============================================================================
# PHASE 1: FOUNDATION (Steps 1-3)
# ============================================================================

def step_01_default_ledger():
    """Create a counter and see the default ledger."""
    step_header(1, "The Default Ledger",
        "A fresh ledger holds two fixed parties with their monthly ceilings.")

    print("""
    The life counter tracks "noes" (tokens) for exactly two parties:

    1. PARTY A (user1) - 5 tokens per month
    2. PARTY B (user2) - 10 tokens per month, and may run a 7-day booster

    The whole ledger is one record, loaded and saved as a unit.
    """)

    wait_for_enter()

    clock = DemoClock(CONFIG.start_time)
    received = []
    hub = NotificationHub()
    hub.subscribe(ALL_KINDS, received.append)

    print('>>> counter = LifeCounter(MemoryStore(), clock=clock)')
    counter = LifeCounter(MemoryStore(clock=clock), hub=hub, clock=clock)

    print('>>> counter.read(PARTY_A)')
    counter.read(PARTY_A)

    section_header("Balances")
    print_balances(counter)

    section_header("Key Insight")
    print("""
    The first load creates and saves the defaults. Nothing else is implicit:
    every later change goes through one of the counter's operations.
    """)

    return counter, clock, received


def step_02_parties(counter: LifeCounter):
    """Understand the two fixed parties and their names."""
    step_header(2, "Two Fixed Parties",
        "Party ids are fixed; display names are configuration.")

    print(f"""
    Party ids never change:   {PARTY_A!r}, {PARTY_B!r}
    Display names come from configuration:
        {PARTY_A} -> {counter.name_of(PARTY_A)!r}
        {PARTY_B} -> {counter.name_of(PARTY_B)!r}
    """)

    section_header("Unknown Party")
    print('>>> counter.read("user3")')
    result = counter.read("user3")
    print(f"\nStatus: {result.status}   Error: {type(result.error).__name__}")

    return counter


def step_03_view(counter: LifeCounter):
    """See the display projection."""
    step_header(3, "The View",
        "view() returns the persisted layout plus names and booster countdown.")

    print('>>> counter.view(PARTY_A)[PARTY_B]')
    view = counter.view(PARTY_A)
    for key, value in view[PARTY_B].items():
        print(f"  {key}: {value!r}")

    return counter


# ============================================================================
# PHASE 2: CONSUMPTION (Steps 4-6)
# ============================================================================

def step_04_request(counter: LifeCounter):
    """Create a consumption request."""
    step_header(4, "Requesting a Consumption",
        "A request lands in the TARGET's pending list. No balance changes yet.")

    print('>>> result = counter.request_consumption(PARTY_A, PARTY_B)')
    result = counter.request_consumption(PARTY_A, PARTY_B)
    print(f"\nrequest_id: {result.request_id}")

    section_header("Balances")
    print_balances(counter)

    return counter, result.request_id


def step_05_handshake(counter: LifeCounter, request_id: str):
    """Both parties approve; the token is consumed."""
    step_header(5, "The Two-Sided Handshake",
        "The token is consumed only once requester AND target have approved.")

    section_header("Target approves")
    print(f'>>> counter.approve(PARTY_B, {request_id[:8]!r}...)')
    partial = counter.approve(PARTY_B, request_id)
    print(f"\nNotification: {partial.notification}  (partial approval, nothing consumed)")

    section_header("Requester approves")
    print(f'>>> counter.approve(PARTY_A, {request_id[:8]!r}...)')
    final = counter.approve(PARTY_A, request_id)
    print(f"\nNotification: {final.notification.kind} {final.notification.payload}")

    section_header("Balances")
    print_balances(counter)

    section_header("Self-Requests")
    print("""
    When a party reports its own use, requester and target are the same,
    so a single approval completes the handshake.
    """)
    print('>>> rid = counter.request_consumption(PARTY_B, PARTY_B).request_id')
    print('>>> counter.approve(PARTY_B, rid)')
    rid = counter.request_consumption(PARTY_B, PARTY_B).request_id
    counter.approve(PARTY_B, rid)
    print_balances(counter)

    return counter


def step_06_deny(counter: LifeCounter):
    """Deny a request."""
    step_header(6, "Denial",
        "The target can drop a request from its own list; balances don't move.")

    rid = counter.request_consumption(PARTY_B, PARTY_A).request_id
    print('>>> rid = counter.request_consumption(PARTY_B, PARTY_A).request_id')
    print('>>> counter.deny(PARTY_A, rid)')
    counter.deny(PARTY_A, rid)

    print_balances(counter)
    return counter


# ============================================================================
# PHASE 3: SHARING (Steps 7-8)
# ============================================================================

def step_07_share(counter: LifeCounter):
    """Transfer tokens to the other party."""
    step_header(7, "Sharing Tokens",
        "Sharing lowers the sender's balance and raises the recipient's shared counter.")

    print(f'>>> counter.share(PARTY_A, PARTY_B, {CONFIG.share_amount})')
    counter.share(PARTY_A, PARTY_B, CONFIG.share_amount)
    print_balances(counter)

    section_header("Key Insight")
    print("""
    sharedTokens is a cumulative counter shown to the recipient. It is
    not added to their consumable balance.
    """)
    return counter


def step_08_rejections(counter: LifeCounter):
    """See what happens when an operation is not allowed."""
    step_header(8, "Rejected Operations",
        "A REJECTED operation saves nothing. The stored record is exactly as before.")

    before = counter.read(PARTY_A).state

    attempts = [
        (f"counter.share(PARTY_A, PARTY_B, {CONFIG.oversized_share})",
         lambda: counter.share(PARTY_A, PARTY_B, CONFIG.oversized_share)),
        ("counter.share(PARTY_A, PARTY_A, 1)", lambda: counter.share(PARTY_A, PARTY_A, 1)),
        ("counter.share(PARTY_A, PARTY_B, 0)", lambda: counter.share(PARTY_A, PARTY_B, 0)),
        ("counter.activate_booster(PARTY_A)", lambda: counter.activate_booster(PARTY_A)),
        ('counter.approve(PARTY_A, "no-such-id")', lambda: counter.approve(PARTY_A, "no-such-id")),
    ]
    for text, call in attempts:
        print(f">>> {text}")
        result = call()
        assert result.status == ExecuteResult.REJECTED

    after = counter.read(PARTY_A).state
    section_header("Result")
    print(f"State unchanged: {before == after}")
    return counter


# ============================================================================
# PHASE 4: TIME (Steps 9-10)
# ============================================================================

def step_09_monthly_refresh(counter: LifeCounter, clock: DemoClock):
    """Cross a calendar month boundary."""
    step_header(9, "Monthly Refresh",
        "The first operation of a new calendar month restores every ceiling.")

    counter.request_consumption(PARTY_B, PARTY_A)
    print_balances(counter)

    current = clock.now
    year, month = (current.year + 1, 1) if current.month == 12 else (current.year, current.month + 1)
    clock.now = datetime(year, month, 1, 9, 0, 0, tzinfo=timezone.utc)
    print(f"\n>>> # clock moves to {clock.now.date()}")
    print('>>> counter.read(PARTY_A)')

    section_header("After the Refresh")
    print_balances(counter)

    section_header("Key Insight")
    print("""
    Refresh restores currentTokens to maxTokens and clears pending requests.
    It happens once per calendar month, lazily, on the next read or operation.
    The shared counter is kept.
    """)
    return counter


def step_10_booster(counter: LifeCounter, clock: DemoClock):
    """Run party B's 7-day booster."""
    step_header(10, "The Booster",
        "B gets +5 tokens for 7 days. Unused bonus tokens lapse at the end.")

    print('>>> counter.activate_booster(PARTY_B)')
    counter.activate_booster(PARTY_B)

    clock.advance(days=2)
    rid = counter.request_consumption(PARTY_B, PARTY_B).request_id
    counter.approve(PARTY_B, rid)
    print(f"\nboosterDaysLeft after 2 days: {counter.view(PARTY_B)[PARTY_B]['boosterDaysLeft']}")
    print_balances(counter)

    section_header("Second Activation While Running")
    result = counter.activate_booster(PARTY_B)
    print(f"Error: {type(result.error).__name__}")

    section_header("Seven Days Later")
    clock.advance(days=5)
    print_balances(counter)
    return counter


# ============================================================================
# PHASE 5: PERSISTENCE (Step 11)
# ============================================================================

def step_11_persistence(clock: DemoClock, received: list):
    """Keep the ledger in a JSON file and restart."""
    step_header(11, "Persistence and Notifications",
        "The ledger survives a restart; every applied change emits a notification.")

    with tempfile.TemporaryDirectory() as tmp:
        config = LifeCounterConfig(data_dir=Path(tmp), verbose=False)
        print(f'>>> config = LifeCounterConfig(data_dir={tmp!r})')
        print('>>> counter = config.build_counter(clock=clock)')
        counter = config.build_counter(clock=clock)
        counter.share(PARTY_B, PARTY_A, 3)

        restarted = config.build_counter(clock=clock)
        print(f"\nAfter restart, A's shared counter: "
              f"{restarted.read(PARTY_A).state.account(PARTY_A).shared_tokens}")
        print(f"File contents:\n{config.ledger_path.read_text(encoding='utf-8')[:240]}...")

    section_header("Notifications Published So Far")
    for notification in received:
        assert isinstance(notification, Notification)
        print(f"  {notification.timestamp:%Y-%m-%d %H:%M}  {notification.kind}")


def main():
    """Run the complete tutorial."""
    print("=" * 70)
    print("       LIFE COUNTER - INTERACTIVE TUTORIAL")
    print("=" * 70)
    print("""
    Welcome! This tutorial walks through the two-party life counter.

    PHASES:
      1-3:  Foundation     - Default ledger, parties, view
      4-6:  Consumption    - Requests, handshake, denial
      7-8:  Sharing        - Transfers, rejections
      9-10: Time           - Monthly refresh, booster
      11:   Persistence    - JSON file, restart, notifications
    """)

    if QUICK_MODE:
        print("Running in QUICK mode (no pauses)")
    else:
        print("Running in INTERACTIVE mode (press Enter to advance)")

    wait_for_enter()

    counter, clock, received = step_01_default_ledger()
    wait_for_enter()

    counter = step_02_parties(counter)
    wait_for_enter()

    counter = step_03_view(counter)
    wait_for_enter()

    counter, request_id = step_04_request(counter)
    wait_for_enter()

    counter = step_05_handshake(counter, request_id)
    wait_for_enter()

    counter = step_06_deny(counter)
    wait_for_enter()

    counter = step_07_share(counter)
    wait_for_enter()

    counter = step_08_rejections(counter)
    wait_for_enter()

    counter = step_09_monthly_refresh(counter, clock)
    wait_for_enter()

    counter = step_10_booster(counter, clock)
    wait_for_enter()

    step_11_persistence(clock, received)

    result = verify_invariants(counter.read(PARTY_A).state)
    print(f"\nInvariants hold: {result['valid']}")

    print("\n" + "=" * 70)
    print("       TUTORIAL COMPLETE!")
    print("=" * 70)
    print("""
    You've learned:

    CONSUMPTION
      - Requests sit in the target's list until both sides approve
      - Self-requests need one approval; denial needs the target

    SHARING
      - Sharing moves balance into the recipient's shared counter
      - Rejected operations change nothing

    TIME
      - Balances refresh once per calendar month
      - The booster adds 5 tokens for 7 days; unused ones lapse

    Next steps:
      - See lifecounter/rules.py for every state transition
      - Run tests: pytest tests/
    """)


if __name__ == "__main__":
    main()
