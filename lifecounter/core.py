"""
Core types and pure functions for the life counter.

This module provides the foundational data structures for the two-party ledger:
1. Constants: party identifiers, account defaults, booster parameters
2. Immutable data structures: ConsumptionRequest, UserAccount, LedgerState
3. Exceptions: LifeCounterError and the typed failure taxonomy
4. Party table helpers: other_party(), require_party()
5. Invariant checking: verify_invariants()

Nothing in this module mutates state. Every "change" builds a new frozen value
with dataclasses.replace().
"""

from __future__ import annotations
from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple, Any, Iterator
import uuid


# ============================================================================
# CONSTANTS
# ============================================================================

# The two fixed parties. The approval conjunction and other_party() assume
# exactly two; do not add a third without redesigning both.
PARTY_A = "user1"
PARTY_B = "user2"
PARTIES: Tuple[str, str] = (PARTY_A, PARTY_B)

# Only this party carries booster state.
BOOSTER_PARTY = PARTY_B

# Ceilings restored on the monthly refresh.
DEFAULT_MAX_TOKENS: Dict[str, int] = {
    PARTY_A: 5,
    PARTY_B: 10,
}

DEFAULT_PARTY_NAMES: Dict[str, str] = {
    PARTY_A: "Saumitr",
    PARTY_B: "Anushka",
}

# Booster: +5 tokens for a 7-day window, unused bonus lapses at expiry.
BOOSTER_BONUS = 5
BOOSTER_WINDOW_DAYS = 7

# Display payload attached to new consumption requests.
DEFAULT_REQUEST_MESSAGE = "Do you really want to say no to this cute guy?"
DEFAULT_REQUEST_PHOTO_URL = "/uploads/cute-guy.jpg"

# Request status values (strings, not enum, to match the persisted layout).
STATUS_PENDING = "pending"
STATUS_APPROVED = "approved"
REQUEST_STATUSES = frozenset({STATUS_PENDING, STATUS_APPROVED})


# ============================================================================
# ENUMS
# ============================================================================

class ExecuteResult(Enum):
    """
    Outcome of an operation attempt.

    APPLIED: The operation was validated, saved and (if it produced one) its
             notification was handed to the fan-out.
    REJECTED: The operation failed with a typed error; nothing was saved.
    """
    APPLIED = "applied"
    REJECTED = "rejected"


# ============================================================================
# EXCEPTIONS
# ============================================================================

class LifeCounterError(Exception):
    """Base exception for all life counter errors."""
    pass


class NotFound(LifeCounterError):
    """Raised when a party id or request id is unknown."""
    pass


class InsufficientBalance(LifeCounterError):
    """Raised when a share exceeds the sender's current balance."""
    pass


class Forbidden(LifeCounterError):
    """Raised when a party attempts an operation reserved for the other party."""
    pass


class AlreadyActive(LifeCounterError):
    """Raised when the booster is activated while it is still running."""
    pass


class InvalidAmount(LifeCounterError, ValueError):
    """Raised when a share amount is not a positive whole number."""
    pass


class DuplicateRequest(LifeCounterError):
    """Raised when an explicit request id is already pending."""
    pass


class StoreError(LifeCounterError):
    """Raised when the persisted ledger record cannot be read or has the wrong shape."""
    pass


# ============================================================================
# PARTY TABLE
# ============================================================================

def is_party(party_id: Any) -> bool:
    """Return True if party_id is one of the two fixed parties."""
    return party_id in PARTIES


def require_party(party_id: Any) -> str:
    """
    Return party_id unchanged if it is a known party.

    Raises:
        NotFound: If party_id is not one of the two fixed parties.
    """
    if not is_party(party_id):
        raise NotFound(f"User {party_id!r} not found")
    return party_id


def other_party(party_id: str) -> str:
    """Return the party that isn't party_id."""
    require_party(party_id)
    return PARTY_B if party_id == PARTY_A else PARTY_A


def new_request_id() -> str:
    """Generate a fresh unique request identifier."""
    return uuid.uuid4().hex


# ============================================================================
# FROZEN STATE HELPERS
# ============================================================================

def _freeze_approvals(approvals: Optional[Dict[str, bool]]) -> Tuple[Tuple[str, bool], ...]:
    """Convert an approvals mapping to a sorted tuple of (party, approved) pairs."""
    if not approvals:
        return ()
    if not isinstance(approvals, dict):
        raise TypeError(f"approvals must be a mapping, got {type(approvals).__name__}")
    return tuple(sorted((str(k), bool(v)) for k, v in approvals.items()))


# ============================================================================
# CORE DATA STRUCTURES
# ============================================================================

@dataclass(frozen=True, slots=True)
class ConsumptionRequest:
    """
    A proposal that a token was used, waiting for both parties to confirm.

    The request lives in exactly one pending list: the target's. It leaves
    that list when both the requester and the target have approved, or when
    the target denies it.

    Attributes:
        id: Unique identifier generated at creation.
        requester_id: Party that proposed the consumption.
        target_user_id: Party whose balance the consumption is charged to.
        timestamp: When the request was created.
        requester_name: Display name of the requester at creation time.
        message: Optional display text.
        photo_url: Optional display image.
        status: STATUS_PENDING or STATUS_APPROVED.
        _frozen_approvals: Internal frozen approvals (tuple of pairs).
    """
    id: str
    requester_id: str
    target_user_id: str
    timestamp: datetime
    requester_name: str = ""
    message: Optional[str] = None
    photo_url: Optional[str] = None
    status: str = STATUS_PENDING
    _frozen_approvals: Tuple[Tuple[str, bool], ...] = field(default_factory=tuple)

    def __post_init__(self):
        for name in ("id", "requester_id", "target_user_id"):
            value = getattr(self, name)
            if not isinstance(value, str):
                raise TypeError(f"ConsumptionRequest {name} must be str, got {type(value).__name__}")
            if not value.strip():
                raise ValueError(f"ConsumptionRequest {name} cannot be empty")
        if not isinstance(self.timestamp, datetime):
            raise TypeError(f"ConsumptionRequest timestamp must be datetime, got {type(self.timestamp).__name__}")
        if self.status not in REQUEST_STATUSES:
            raise ValueError(f"Unknown request status {self.status!r}")

    @property
    def approvals(self) -> Dict[str, bool]:
        """Approvals recorded so far as a fresh dict (empty until the first approval)."""
        return dict(self._frozen_approvals)

    def is_approved_by(self, party_id: str) -> bool:
        return self.approvals.get(party_id, False)

    def with_approval(self, party_id: str) -> ConsumptionRequest:
        """Return a copy with approvals[party_id] set to True."""
        approvals = self.approvals
        approvals[party_id] = True
        return replace(self, _frozen_approvals=_freeze_approvals(approvals))

    @property
    def fully_approved(self) -> bool:
        """
        True once both the requester and the target have approved.

        For a self-request requester and target are the same party, so a
        single approval satisfies both sides.
        """
        return self.is_approved_by(self.requester_id) and self.is_approved_by(self.target_user_id)

    def __repr__(self) -> str:
        marks = ",".join(p for p, ok in self._frozen_approvals if ok) or "-"
        return (f"ConsumptionRequest({self.id[:8]}: {self.requester_id}→{self.target_user_id}, "
                f"{self.status}, approved_by={marks})")


@dataclass(frozen=True, slots=True)
class UserAccount:
    """
    Token balance and bookkeeping for one party.

    Booster fields are None for every party except BOOSTER_PARTY, which always
    carries them.

    Attributes:
        party_id: Fixed party identifier.
        current_tokens: Consumable balance (never negative).
        max_tokens: Ceiling restored on the monthly refresh.
        last_refresh: Time of the last monthly reset.
        shared_tokens: Cumulative tokens received by transfer (display only).
        pending_requests: Consumption requests targeting this party, oldest first.
        booster_active: Whether the 7-day booster window is running.
        booster_start: When the running booster was activated.
        booster_noes: Bonus tokens still eligible under the booster.
    """
    party_id: str
    current_tokens: int
    max_tokens: int
    last_refresh: datetime
    shared_tokens: int = 0
    pending_requests: Tuple[ConsumptionRequest, ...] = ()
    booster_active: Optional[bool] = None
    booster_start: Optional[datetime] = None
    booster_noes: Optional[int] = None

    def __post_init__(self):
        require_party(self.party_id)
        for name in ("current_tokens", "max_tokens", "shared_tokens"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int):
                raise ValueError(f"{name} must be int, got {type(value).__name__}")
            if value < 0:
                raise ValueError(f"{name} cannot be negative, got {value}")
        if not isinstance(self.last_refresh, datetime):
            raise TypeError(f"last_refresh must be datetime, got {type(self.last_refresh).__name__}")
        if not isinstance(self.pending_requests, tuple):
            object.__setattr__(self, 'pending_requests', tuple(self.pending_requests))
        if self.party_id == BOOSTER_PARTY:
            if self.booster_active is None or self.booster_noes is None:
                raise ValueError(f"{self.party_id} must carry booster state")
            if isinstance(self.booster_noes, bool) or not isinstance(self.booster_noes, int):
                raise ValueError(f"booster_noes must be int, got {type(self.booster_noes).__name__}")
            if self.booster_noes < 0:
                raise ValueError(f"booster_noes cannot be negative, got {self.booster_noes}")
        elif (self.booster_active is not None or self.booster_start is not None
              or self.booster_noes is not None):
            raise ValueError(f"{self.party_id} cannot carry booster state")

    @property
    def has_booster(self) -> bool:
        return self.party_id == BOOSTER_PARTY

    def find_request(self, request_id: str) -> Optional[Tuple[int, ConsumptionRequest]]:
        """Return (index, request) for request_id, or None if it is not pending here."""
        for index, request in enumerate(self.pending_requests):
            if request.id == request_id:
                return index, request
        return None

    def __repr__(self) -> str:
        booster = ""
        if self.has_booster:
            booster = f", booster={'on' if self.booster_active else 'off'}/{self.booster_noes}"
        return (f"UserAccount({self.party_id}: {self.current_tokens}/{self.max_tokens}, "
                f"shared={self.shared_tokens}, pending={len(self.pending_requests)}{booster})")


@dataclass(frozen=True, slots=True)
class LedgerState:
    """
    The complete two-account record, read and written as one unit.

    Accounts are held in PARTIES order. Use account() to look one up and
    with_account() to derive a new state with one account swapped.
    """
    accounts: Tuple[UserAccount, UserAccount]

    def __post_init__(self):
        accounts = tuple(self.accounts)
        if tuple(a.party_id for a in accounts) != PARTIES:
            raise ValueError(
                f"LedgerState needs exactly the accounts {PARTIES}, "
                f"got {tuple(a.party_id for a in accounts)}"
            )
        object.__setattr__(self, 'accounts', accounts)

    def account(self, party_id: str) -> UserAccount:
        """
        Return the account of party_id.

        Raises:
            NotFound: If party_id is not a known party.
        """
        require_party(party_id)
        return self.accounts[PARTIES.index(party_id)]

    def with_account(self, account: UserAccount) -> LedgerState:
        """Return a new state with account replacing the one of the same party."""
        index = PARTIES.index(account.party_id)
        accounts = list(self.accounts)
        accounts[index] = account
        return LedgerState(tuple(accounts))

    def __iter__(self) -> Iterator[UserAccount]:
        return iter(self.accounts)


# ============================================================================
# DEFAULTS
# ============================================================================

def default_account(party_id: str, now: datetime) -> UserAccount:
    """Create a fresh account for party_id at its default ceiling."""
    require_party(party_id)
    max_tokens = DEFAULT_MAX_TOKENS[party_id]
    if party_id == BOOSTER_PARTY:
        return UserAccount(
            party_id=party_id,
            current_tokens=max_tokens,
            max_tokens=max_tokens,
            last_refresh=now,
            booster_active=False,
            booster_start=None,
            booster_noes=0,
        )
    return UserAccount(
        party_id=party_id,
        current_tokens=max_tokens,
        max_tokens=max_tokens,
        last_refresh=now,
    )


def default_state(now: datetime) -> LedgerState:
    """Create the initial two-account ledger: A at 5/5, B at 10/10 with booster off."""
    return LedgerState(tuple(default_account(p, now) for p in PARTIES))


# ============================================================================
# INVARIANTS
# ============================================================================

def verify_invariants(state: LedgerState) -> Dict[str, Any]:
    """
    Check the ledger invariants that hold after any sequence of operations.

    Checks:
    - Token counters are non-negative
    - Every pending request sits in its target's list, and only there
    - Request ids are unique across both lists
    - Pending lists hold only pending requests
    - Booster state is consistent (inactive booster has no start and no noes)

    Returns:
        Dict with keys:
        - 'valid': bool - True if no violations were found
        - 'violations': List[str] - Description of each violation

    Example:
        result = verify_invariants(counter.read(PARTY_A).state)
        assert result['valid'], result['violations']
    """
    violations: List[str] = []
    seen_ids: Dict[str, str] = {}

    for account in state:
        if account.current_tokens < 0:
            violations.append(f"{account.party_id}: current_tokens {account.current_tokens} < 0")
        if account.shared_tokens < 0:
            violations.append(f"{account.party_id}: shared_tokens {account.shared_tokens} < 0")

        for request in account.pending_requests:
            if request.target_user_id != account.party_id:
                violations.append(
                    f"{account.party_id}: request {request.id} targets {request.target_user_id}"
                )
            if request.status != STATUS_PENDING:
                violations.append(f"{account.party_id}: request {request.id} is {request.status}")
            if request.id in seen_ids:
                violations.append(
                    f"request {request.id} pending in both {seen_ids[request.id]} and {account.party_id}"
                )
            seen_ids[request.id] = account.party_id

        if account.has_booster and not account.booster_active:
            if account.booster_start is not None:
                violations.append(f"{account.party_id}: inactive booster has a start time")
            if account.booster_noes:
                violations.append(f"{account.party_id}: inactive booster holds {account.booster_noes} noes")
        if account.has_booster and account.booster_active and account.booster_start is None:
            violations.append(f"{account.party_id}: active booster has no start time")

    return {
        'valid': len(violations) == 0,
        'violations': violations,
    }
