"""
counter.py - Stateful life counter

The LifeCounter is the only component that changes persisted state. Every
operation runs the same cycle under one lock:

    load -> maintenance (refresh, booster lapse) -> rule -> save

and publishes the rule's notification after the lock is released.

Key responsibilities:
    - Serializes all load-mutate-save cycles (no lost updates between callers)
    - Converts typed rule errors into REJECTED results, saving nothing
    - Keeps an in-memory log of applied operations
    - Projects the ledger for display (names, booster days left)
"""

from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from typing import Dict, List, Optional, Callable, Any
import threading

from .core import (
    LedgerState, ExecuteResult, LifeCounterError,
    DEFAULT_PARTY_NAMES, DEFAULT_REQUEST_MESSAGE, DEFAULT_REQUEST_PHOTO_URL,
    require_party,
)
from .clock import utc_now, booster_days_left
from .notifications import Notification, NotificationHub
from .rules import (
    Transition,
    run_maintenance,
    request_consumption, approve_consumption, deny_consumption,
    share_tokens, activate_booster,
)
from .store import LedgerStore, state_to_dict


# Operation names used in results and the operation log.
OP_READ = "read"
OP_MAINTENANCE = "maintenance"
OP_REQUEST = "request_consumption"
OP_APPROVE = "approve"
OP_DENY = "deny"
OP_SHARE = "share"
OP_ACTIVATE_BOOSTER = "activate_booster"


@dataclass(frozen=True, slots=True)
class OperationResult:
    """
    Outcome of one LifeCounter operation.

    Attributes:
        status: APPLIED or REJECTED
        operation: Operation name (OP_* constant)
        party_id: Calling party
        state: Ledger state after the operation (the unchanged stored state
               when rejected)
        notification: Notification handed to the hub, if any
        error: The typed error when rejected
        request_id: Id of the created request (request_consumption only)
    """
    status: ExecuteResult
    operation: str
    party_id: str
    state: LedgerState
    notification: Optional[Notification] = None
    error: Optional[LifeCounterError] = None
    request_id: Optional[str] = None

    @property
    def applied(self) -> bool:
        return self.status == ExecuteResult.APPLIED


@dataclass(frozen=True, slots=True)
class OperationRecord:
    """Audit entry for an applied operation."""
    sequence_number: int
    operation: str
    party_id: str
    execution_time: datetime
    notification_kind: Optional[str] = None


class LifeCounter:
    """
    Two-party life counter over a LedgerStore.

    Thread Safety:
        All operations on one instance are serialized by an internal lock.
        Run a single LifeCounter per ledger record; two instances over the
        same file do not coordinate.

    Example:
        counter = LifeCounter(JsonFileStore("data/lives.json"))
        result = counter.request_consumption(PARTY_A, PARTY_B)
        counter.approve(PARTY_B, result.request_id)
        counter.approve(PARTY_A, result.request_id)
        counter.read(PARTY_A).state.account(PARTY_B).current_tokens   # 9
    """

    def __init__(
        self,
        store: LedgerStore,
        hub: Optional[NotificationHub] = None,
        clock: Optional[Callable[[], datetime]] = None,
        party_names: Optional[Dict[str, str]] = None,
        verbose: bool = True,
    ):
        """
        Create a life counter.

        Args:
            store: Where the ledger record lives
            hub: Notification fan-out (a private hub is created if omitted)
            clock: Callable returning the current time (default: utc_now)
            party_names: Display names by party id (default: DEFAULT_PARTY_NAMES)
            verbose: Print a result box per operation (default: True)
        """
        self.store = store
        self.hub = hub if hub is not None else NotificationHub(verbose=verbose)
        self._clock = clock or utc_now
        self.party_names: Dict[str, str] = {**DEFAULT_PARTY_NAMES, **(party_names or {})}
        self.verbose = verbose
        self.operation_log: List[OperationRecord] = []
        self._next_sequence = 0
        self._lock = threading.RLock()

    @property
    def current_time(self) -> datetime:
        return self._clock()

    def name_of(self, party_id: str) -> str:
        return self.party_names.get(party_id, "")

    # ========================================================================
    # OPERATIONS
    # ========================================================================

    def read(self, party_id: str) -> OperationResult:
        """
        Return the current ledger as seen by party_id.

        Maintenance effects (refresh, booster lapse) are saved if they changed
        anything; otherwise nothing is written.
        """
        with self._lock:
            now = self._clock()
            state = self.store.load()
            try:
                require_party(party_id)
            except LifeCounterError as e:
                return self._reject(OP_READ, party_id, state, e)

            maintained = run_maintenance(state, now)
            if maintained.changed(state):
                self.store.save(maintained.state)
                self._log(OP_MAINTENANCE, party_id, now, None)
            return OperationResult(
                status=ExecuteResult.APPLIED,
                operation=OP_READ,
                party_id=party_id,
                state=maintained.state,
            )

    def request_consumption(
        self,
        requester_id: str,
        target_user_id: str,
        message: Optional[str] = DEFAULT_REQUEST_MESSAGE,
        photo_url: Optional[str] = DEFAULT_REQUEST_PHOTO_URL,
    ) -> OperationResult:
        """Ask the parties to confirm that target_user_id used a token."""
        def rule(state: LedgerState, now: datetime) -> Transition:
            return request_consumption(
                state, requester_id, target_user_id, now,
                message=message,
                photo_url=photo_url,
                requester_name=self.name_of(requester_id),
            )
        return self._apply(OP_REQUEST, requester_id, rule)

    def approve(self, approver_id: str, request_id: str) -> OperationResult:
        """Approve a pending request; consumes the token once both sides have approved."""
        return self._apply(
            OP_APPROVE, approver_id,
            lambda state, now: approve_consumption(state, approver_id, request_id, now),
        )

    def deny(self, denier_id: str, request_id: str) -> OperationResult:
        """Deny a request pending on denier_id's list."""
        return self._apply(
            OP_DENY, denier_id,
            lambda state, now: deny_consumption(state, denier_id, request_id, now),
        )

    def share(self, from_id: str, to_id: str, amount: int) -> OperationResult:
        """Transfer amount tokens from from_id to to_id's shared counter."""
        return self._apply(
            OP_SHARE, from_id,
            lambda state, now: share_tokens(state, from_id, to_id, amount, now),
        )

    def activate_booster(self, requester_id: str) -> OperationResult:
        """Start the 7-day booster (booster party only)."""
        return self._apply(
            OP_ACTIVATE_BOOSTER, requester_id,
            lambda state, now: activate_booster(state, requester_id, now),
        )

    def view(self, party_id: str) -> Dict[str, Any]:
        """
        Display projection of the ledger for party_id.

        Returns the persisted layout of both accounts plus each party's
        display name and, while the booster runs, boosterDaysLeft.

        Raises:
            NotFound: If party_id is not a known party
        """
        result = self.read(party_id)
        if not result.applied:
            raise result.error
        return project_state(result.state, self.party_names, self._clock())

    # ========================================================================
    # INTERNALS
    # ========================================================================

    def _apply(
        self,
        operation: str,
        party_id: str,
        rule: Callable[[LedgerState, datetime], Transition],
    ) -> OperationResult:
        """
        Run one load -> maintenance -> rule -> save cycle under the lock.

        On a typed rule error nothing is saved, not even maintenance effects;
        they are re-derived on the next call.
        """
        with self._lock:
            now = self._clock()
            stored = self.store.load()
            maintained = run_maintenance(stored, now).state
            try:
                transition = rule(maintained, now)
            except LifeCounterError as e:
                return self._reject(operation, party_id, stored, e)

            self.store.save(transition.state)
            notification = transition.notification
            self._log(operation, party_id, now, notification)

        result = OperationResult(
            status=ExecuteResult.APPLIED,
            operation=operation,
            party_id=party_id,
            state=transition.state,
            notification=notification,
            request_id=_created_request_id(notification) if operation == OP_REQUEST else None,
        )
        if self.verbose:
            self._print_result(result)
        if notification is not None:
            self.hub.publish(notification)
        return result

    def _reject(
        self,
        operation: str,
        party_id: str,
        state: LedgerState,
        error: LifeCounterError,
    ) -> OperationResult:
        result = OperationResult(
            status=ExecuteResult.REJECTED,
            operation=operation,
            party_id=party_id,
            state=state,
            error=error,
        )
        if self.verbose:
            self._print_result(result)
        return result

    def _log(
        self,
        operation: str,
        party_id: str,
        now: datetime,
        notification: Optional[Notification],
    ) -> OperationRecord:
        record = OperationRecord(
            sequence_number=self._next_sequence,
            operation=operation,
            party_id=party_id,
            execution_time=now,
            notification_kind=notification.kind if notification else None,
        )
        self._next_sequence += 1
        self.operation_log.append(record)
        return record

    def _print_result(self, result: OperationResult) -> None:
        """Print a boxed summary of an operation and its outcome."""
        w = 72
        bar = "─" * w

        def pad(text: str) -> str:
            """Pad or truncate text to exactly w characters."""
            if len(text) > w:
                return text[:w-3] + "..."
            return text + " " * (w - len(text))

        lines = [
            f"┌{bar}┐",
            f"│{pad(' ' + result.operation + ' by ' + str(result.party_id))}│",
            f"├{bar}┤",
        ]
        for account in result.state:
            lines.append(f"│{pad('   ' + repr(account))}│")
        if result.notification is not None:
            lines.append(f"│{pad('   notify: ' + result.notification.kind)}│")
        lines.append(f"├{bar}┤")
        if result.applied:
            lines.append(f"│{pad(' ✓ APPLIED')}│")
        else:
            reason = f"{type(result.error).__name__}: {result.error}"
            lines.append(f"│{pad(' ✗ REJECTED: ' + reason)}│")
        lines.append(f"└{bar}┘")
        print("\n".join(lines))


def _created_request_id(notification: Optional[Notification]) -> Optional[str]:
    if notification is None:
        return None
    return notification.payload.get("requestId")


def project_state(
    state: LedgerState,
    party_names: Dict[str, str],
    now: datetime,
) -> Dict[str, Any]:
    """
    Build the display view of a ledger state.

    Args:
        state: Ledger state (already maintained)
        party_names: Display names by party id
        now: Current time, for the booster countdown

    Returns:
        Dict keyed by party id. Each entry is the persisted account layout
        plus 'name' and, for a running booster, 'boosterDaysLeft'.
    """
    view = state_to_dict(state)
    for account in state:
        entry = view[account.party_id]
        entry["name"] = party_names.get(account.party_id, "")
        if account.has_booster and account.booster_active and account.booster_start is not None:
            entry["boosterDaysLeft"] = booster_days_left(account.booster_start, now)
    return view
