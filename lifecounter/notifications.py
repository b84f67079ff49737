"""
notifications.py - State-change notifications and their fan-out

Rule functions never reach into a transport. Each one returns zero or one
Notification; the LifeCounter hands it to a NotificationHub after the new
state is saved.

Core concepts:
1. Notification: Immutable description of what changed and when
2. Factory functions: one per notification kind
3. NotificationHub: Subscribers per kind, best-effort delivery
"""

from __future__ import annotations
from collections import deque
from dataclasses import dataclass
from datetime import datetime
from typing import Deque, Dict, List, Callable, Any, Tuple

from .core import ConsumptionRequest


# ============================================================================
# NOTIFICATION KINDS
# ============================================================================

REQUEST_CREATED = "request-created"
TOKEN_CONSUMED = "token-consumed"
REQUEST_DENIED = "request-denied"
TOKENS_SHARED = "tokens-shared"
BOOSTER_ACTIVATED = "booster-activated"

NOTIFICATION_KINDS = frozenset({
    REQUEST_CREATED, TOKEN_CONSUMED, REQUEST_DENIED, TOKENS_SHARED, BOOSTER_ACTIVATED,
})

# Subscribe with this kind to receive every notification.
ALL_KINDS = "*"


# ============================================================================
# NOTIFICATION DATA STRUCTURE
# ============================================================================

@dataclass(frozen=True, slots=True)
class Notification:
    """
    Immutable state-change notification.

    Attributes:
        kind: One of NOTIFICATION_KINDS
        timestamp: When the operation that produced it ran
        params: Payload as frozen tuple of (key, value) pairs
    """
    kind: str
    timestamp: datetime
    params: tuple = ()  # Frozen for hashability: (("key1", "val1"), ("key2", "val2"))

    def __post_init__(self):
        if self.kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind {self.kind!r}")

    @property
    def payload(self) -> Dict[str, Any]:
        """Get params as a dictionary for convenience."""
        return dict(self.params)


# ============================================================================
# FACTORY FUNCTIONS
# ============================================================================

def request_created(request: ConsumptionRequest, timestamp: datetime) -> Notification:
    """Create a notification for a new consumption request."""
    return Notification(
        kind=REQUEST_CREATED,
        timestamp=timestamp,
        params=(
            ("requestId", request.id),
            ("requesterId", request.requester_id),
            ("requesterName", request.requester_name),
            ("targetUserId", request.target_user_id),
            ("message", request.message),
            ("photoUrl", request.photo_url),
        ),
    )


def token_consumed(
    party_id: str,
    current_tokens: int,
    request: ConsumptionRequest,
    timestamp: datetime,
) -> Notification:
    """Create a notification for a fully approved consumption."""
    return Notification(
        kind=TOKEN_CONSUMED,
        timestamp=timestamp,
        params=(
            ("userId", party_id),
            ("currentTokens", current_tokens),
            ("requestId", request.id),
            ("requesterId", request.requester_id),
        ),
    )


def request_denied(request_id: str, denied_by: str, timestamp: datetime) -> Notification:
    """Create a notification for a denied request."""
    return Notification(
        kind=REQUEST_DENIED,
        timestamp=timestamp,
        params=(
            ("requestId", request_id),
            ("deniedBy", denied_by),
        ),
    )


def tokens_shared(from_id: str, to_id: str, amount: int, timestamp: datetime) -> Notification:
    """Create a notification for a token transfer."""
    return Notification(
        kind=TOKENS_SHARED,
        timestamp=timestamp,
        params=(
            ("fromUserId", from_id),
            ("toUserId", to_id),
            ("tokensShared", amount),
        ),
    )


def booster_activated(
    party_id: str,
    current_tokens: int,
    booster_noes: int,
    timestamp: datetime,
) -> Notification:
    """Create a notification for booster activation."""
    return Notification(
        kind=BOOSTER_ACTIVATED,
        timestamp=timestamp,
        params=(
            ("userId", party_id),
            ("currentTokens", current_tokens),
            ("boosterNoes", booster_noes),
        ),
    )


# ============================================================================
# FAN-OUT
# ============================================================================

# Subscriber type: (notification) -> None
Subscriber = Callable[[Notification], None]

# Most recent delivery failures kept by a hub.
DEFAULT_FAILURE_HISTORY = 100


class NotificationHub:
    """
    Delivers notifications to subscribers, fire-and-forget.

    Delivery is at-most-once and best-effort: a subscriber that raises is
    recorded in `failures` and skipped, and the remaining subscribers still
    receive the notification. publish() never raises on a subscriber's behalf.
    `failures` keeps only the latest `max_failures` entries.
    """

    def __init__(self, verbose: bool = True, max_failures: int = DEFAULT_FAILURE_HISTORY):
        if max_failures < 1:
            raise ValueError(f"max_failures must be positive, got {max_failures}")
        self._subscribers: Dict[str, List[Subscriber]] = {}
        self.failures: Deque[Tuple[Notification, Subscriber, Exception]] = deque(maxlen=max_failures)
        self.verbose = verbose

    def subscribe(self, kind: str, subscriber: Subscriber) -> None:
        """
        Register subscriber for one notification kind, or ALL_KINDS.

        Raises:
            ValueError: If kind is not a known notification kind or ALL_KINDS.
        """
        if kind != ALL_KINDS and kind not in NOTIFICATION_KINDS:
            raise ValueError(f"Unknown notification kind {kind!r}")
        self._subscribers.setdefault(kind, []).append(subscriber)

    def unsubscribe(self, kind: str, subscriber: Subscriber) -> None:
        subscribers = self._subscribers.get(kind, [])
        if subscriber in subscribers:
            subscribers.remove(subscriber)

    def subscriber_count(self, kind: str = ALL_KINDS) -> int:
        """Number of subscribers that would receive a notification of this kind."""
        if kind == ALL_KINDS:
            return sum(len(s) for s in self._subscribers.values())
        return len(self._subscribers.get(kind, [])) + len(self._subscribers.get(ALL_KINDS, []))

    def publish(self, notification: Notification) -> int:
        """
        Deliver notification to every matching subscriber.

        Kind-specific subscribers are called first, in registration order,
        then ALL_KINDS subscribers.

        Returns:
            Number of subscribers that accepted the notification without raising.
        """
        delivered = 0
        targets = list(self._subscribers.get(notification.kind, []))
        targets.extend(self._subscribers.get(ALL_KINDS, []))

        for subscriber in targets:
            try:
                subscriber(notification)
            except Exception as e:
                self.failures.append((notification, subscriber, e))
                if self.verbose:
                    print(f"⚠️  NOTIFY FAILED: {notification.kind} -> "
                          f"{getattr(subscriber, '__name__', repr(subscriber))}: {e!r}")
                continue
            delivered += 1

        return delivered
