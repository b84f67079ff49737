"""
rules.py - Token rules engine

Pure functions implementing every state transition of the two-party ledger:
1. maintain_refresh() / maintain_booster_lapse() - time-driven maintenance
2. request_consumption() / approve_consumption() / deny_consumption() - the
   mutual-approval protocol for consuming a token
3. share_tokens() - transfer between parties
4. activate_booster() - party B's 7-day bonus window

Every function takes a LedgerState and the current time and returns a
Transition (new state plus zero or one Notification). Failures raise one of
the typed LifeCounterError subclasses before any new state is built, so a
failed call has no effect.
"""

from __future__ import annotations
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Optional, Tuple

from .core import (
    LedgerState, UserAccount, ConsumptionRequest,
    BOOSTER_PARTY, BOOSTER_BONUS, BOOSTER_WINDOW_DAYS,
    DEFAULT_REQUEST_MESSAGE, DEFAULT_REQUEST_PHOTO_URL,
    STATUS_APPROVED,
    NotFound, InsufficientBalance, Forbidden, AlreadyActive, InvalidAmount, DuplicateRequest,
    require_party, other_party, new_request_id,
)
from .clock import refresh_due, booster_expired
from .notifications import (
    Notification,
    request_created, token_consumed, request_denied, tokens_shared, booster_activated,
)


@dataclass(frozen=True, slots=True)
class Transition:
    """
    Result of a rule function: the state to save and the notification to publish.

    Attributes:
        state: The complete new ledger state
        notification: Notification for connected viewers, or None
    """
    state: LedgerState
    notification: Optional[Notification] = None

    def changed(self, before: LedgerState) -> bool:
        return self.state != before


# ============================================================================
# MAINTENANCE
# ============================================================================

def maintain_refresh(state: LedgerState, now: datetime) -> Transition:
    """
    Apply the monthly refresh to every account that crossed a month boundary.

    A refreshed account gets current_tokens = max_tokens, last_refresh = now
    and an empty pending list. Running it again in the same month is a no-op.
    """
    for account in state:
        if refresh_due(account.last_refresh, now):
            state = state.with_account(replace(
                account,
                current_tokens=account.max_tokens,
                last_refresh=now,
                pending_requests=(),
            ))
    return Transition(state)


def maintain_booster_lapse(state: LedgerState, now: datetime) -> Transition:
    """
    Expire party B's booster once its 7-day window has passed.

    Unused bonus tokens (booster_noes) are taken back from current_tokens,
    floored at 0, and the booster is reset.
    """
    account = state.account(BOOSTER_PARTY)
    if not account.booster_active or account.booster_start is None:
        return Transition(state)
    if not booster_expired(account.booster_start, now, BOOSTER_WINDOW_DAYS):
        return Transition(state)

    lapsed = replace(
        account,
        current_tokens=max(0, account.current_tokens - account.booster_noes),
        booster_active=False,
        booster_start=None,
        booster_noes=0,
    )
    return Transition(state.with_account(lapsed))


def run_maintenance(state: LedgerState, now: datetime) -> Transition:
    """Refresh, then booster lapse. Run before every operation."""
    state = maintain_refresh(state, now).state
    return maintain_booster_lapse(state, now)


# ============================================================================
# CONSUMPTION PROTOCOL
# ============================================================================

def request_consumption(
    state: LedgerState,
    requester_id: str,
    target_user_id: str,
    now: datetime,
    message: Optional[str] = DEFAULT_REQUEST_MESSAGE,
    photo_url: Optional[str] = DEFAULT_REQUEST_PHOTO_URL,
    requester_name: str = "",
    request_id: Optional[str] = None,
) -> Transition:
    """
    Propose that target_user_id used a token.

    The request is appended to the target's pending list with no approvals.
    No balance check is made here: reporting a use must stay possible even
    when the target's balance is 0.

    Args:
        state: Current ledger state
        requester_id: Party proposing the consumption
        target_user_id: Party whose balance would be charged
        now: Current time (becomes the request timestamp)
        message: Optional display text
        photo_url: Optional display image
        requester_name: Display name recorded on the request
        request_id: Explicit id (a fresh uuid is generated if omitted)

    Returns:
        Transition with the request appended and a request-created notification

    Raises:
        NotFound: If either party id is unknown
        DuplicateRequest: If an explicit request_id is already pending
    """
    require_party(requester_id)
    target = state.account(target_user_id)

    request = ConsumptionRequest(
        id=request_id or new_request_id(),
        requester_id=requester_id,
        target_user_id=target_user_id,
        timestamp=now,
        requester_name=requester_name,
        message=message,
        photo_url=photo_url,
    )
    if any(r.id == request.id for account in state for r in account.pending_requests):
        raise DuplicateRequest(f"Request id {request.id} is already pending")

    updated = replace(target, pending_requests=target.pending_requests + (request,))
    return Transition(state.with_account(updated), request_created(request, now))


def _locate_for_approval(
    state: LedgerState,
    approver_id: str,
    request_id: str,
) -> Tuple[UserAccount, int, ConsumptionRequest]:
    """
    Find a request approver_id may approve.

    The approver's own pending list is searched first. A requester may also
    approve its own request sitting in the other party's list; that is how a
    cross-request collects its second approval.
    """
    own = state.account(approver_id)
    found = own.find_request(request_id)
    if found is not None:
        return (own,) + found

    other = state.account(other_party(approver_id))
    found = other.find_request(request_id)
    if found is not None and found[1].requester_id == approver_id:
        return (other,) + found

    raise NotFound(f"Request {request_id!r} not found for {approver_id}")


def approve_consumption(
    state: LedgerState,
    approver_id: str,
    request_id: str,
    now: datetime,
) -> Transition:
    """
    Record approver_id's approval and consume the token once both sides agree.

    The token is consumed only when approvals[requester] and approvals[target]
    are both True. A self-request resolves on its first approval; a
    cross-request needs one approval from each party, in either order.

    On full approval the target's current_tokens drops by 1 (floored at 0).
    If the target is the booster party with an active booster and noes left,
    booster_noes drops by 1 as well, and the booster switches off when it
    reaches 0. The request is then removed from the pending list.

    Args:
        state: Current ledger state
        approver_id: Party approving
        request_id: Id of the pending request
        now: Current time

    Returns:
        Transition with the updated request or account. The notification is
        token-consumed on full approval, None on a partial approval.

    Raises:
        NotFound: If approver_id is unknown or cannot see request_id
    """
    holder, index, request = _locate_for_approval(state, approver_id, request_id)
    request = request.with_approval(approver_id)
    pending = list(holder.pending_requests)

    if not request.fully_approved:
        pending[index] = request
        updated = replace(holder, pending_requests=tuple(pending))
        return Transition(state.with_account(updated))

    del pending[index]
    changes = {
        "current_tokens": max(0, holder.current_tokens - 1),
        "pending_requests": tuple(pending),
    }
    if holder.has_booster and holder.booster_active and holder.booster_noes > 0:
        noes = holder.booster_noes - 1
        changes["booster_noes"] = noes
        if noes == 0:
            changes["booster_active"] = False
            changes["booster_start"] = None

    updated = replace(holder, **changes)
    approved = replace(request, status=STATUS_APPROVED)
    notification = token_consumed(holder.party_id, updated.current_tokens, approved, now)
    return Transition(state.with_account(updated), notification)


def deny_consumption(
    state: LedgerState,
    denier_id: str,
    request_id: str,
    now: datetime,
) -> Transition:
    """
    Remove a request from denier_id's pending list without touching any balance.

    Raises:
        NotFound: If denier_id is unknown or request_id is not in its list
    """
    account = state.account(denier_id)
    found = account.find_request(request_id)
    if found is None:
        raise NotFound(f"Request {request_id!r} not found for {denier_id}")

    index, _ = found
    pending = account.pending_requests[:index] + account.pending_requests[index + 1:]
    updated = replace(account, pending_requests=pending)
    return Transition(state.with_account(updated), request_denied(request_id, denier_id, now))


# ============================================================================
# TRANSFERS
# ============================================================================

def share_tokens(
    state: LedgerState,
    from_id: str,
    to_id: str,
    amount: int,
    now: datetime,
) -> Transition:
    """
    Give amount tokens from from_id's balance to to_id.

    The sender's current_tokens drops by amount; the recipient's
    shared_tokens counter rises by amount. shared_tokens is a separate
    cumulative counter and is not added to the recipient's current_tokens.

    Raises:
        NotFound: If either party id is unknown
        Forbidden: If from_id and to_id are the same party
        InvalidAmount: If amount is not a positive int
        InsufficientBalance: If amount exceeds the sender's current_tokens
    """
    sender = state.account(from_id)
    recipient = state.account(to_id)
    if from_id == to_id:
        raise Forbidden(f"{from_id} cannot share tokens with itself")
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise InvalidAmount(f"Share amount must be a positive whole number, got {amount!r}")
    if amount > sender.current_tokens:
        raise InsufficientBalance(
            f"{from_id} has {sender.current_tokens} tokens, cannot share {amount}"
        )

    state = state.with_account(replace(sender, current_tokens=sender.current_tokens - amount))
    state = state.with_account(replace(recipient, shared_tokens=recipient.shared_tokens + amount))
    return Transition(state, tokens_shared(from_id, to_id, amount, now))


# ============================================================================
# BOOSTER
# ============================================================================

def activate_booster(state: LedgerState, requester_id: str, now: datetime) -> Transition:
    """
    Start party B's 7-day booster: +5 current tokens, 5 bonus noes.

    An expired booster is lapsed first, so activation right after expiry
    succeeds.

    Raises:
        Forbidden: If requester_id is not the booster party
        AlreadyActive: If the booster is still running after the lapse check
    """
    if requester_id != BOOSTER_PARTY:
        raise Forbidden(f"Only {BOOSTER_PARTY} can activate the booster")

    state = maintain_booster_lapse(state, now).state
    account = state.account(BOOSTER_PARTY)
    if account.booster_active:
        raise AlreadyActive("Booster already active")

    boosted = replace(
        account,
        current_tokens=account.current_tokens + BOOSTER_BONUS,
        booster_active=True,
        booster_start=now,
        booster_noes=BOOSTER_BONUS,
    )
    notification = booster_activated(BOOSTER_PARTY, boosted.current_tokens, boosted.booster_noes, now)
    return Transition(state.with_account(boosted), notification)
