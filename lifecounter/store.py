"""
store.py - Ledger persistence

The ledger is persisted as one JSON record holding both accounts and is always
read and written whole. This module provides:
1. LedgerStore protocol: load() / save()
2. JsonFileStore: the record on disk, replaced atomically on save
3. MemoryStore: the same contract held in process (tests, demos)
4. state_to_dict() / state_from_dict(): the camelCase JSON layout

Neither store locks. Serializing load-mutate-save is the LifeCounter's job.
"""

from __future__ import annotations
from datetime import datetime
from pathlib import Path
from typing import Dict, Any, Callable, Optional, Protocol, Union, runtime_checkable
import json
import os
import tempfile

from .core import (
    LedgerState, UserAccount, ConsumptionRequest,
    PARTIES, STATUS_PENDING,
    StoreError,
    default_state, _freeze_approvals,
)
from .clock import utc_now, ensure_utc


DEFAULT_LEDGER_FILENAME = "lives.json"

# Keys written by older records, mapped to the current layout.
_LEGACY_KEYS = {
    "currentLives": "currentTokens",
    "maxLives": "maxTokens",
    "sharedLives": "sharedTokens",
}


# ============================================================================
# PROTOCOL
# ============================================================================

@runtime_checkable
class LedgerStore(Protocol):
    """
    Durable home of the two-account record.

    load() returns the full state, creating and persisting the defaults the
    first time. save() overwrites the record as one unit.
    """

    def load(self) -> LedgerState:
        ...

    def save(self, state: LedgerState) -> None:
        ...


# ============================================================================
# JSON LAYOUT
# ============================================================================

def _ts_to_str(ts: Optional[datetime]) -> Optional[str]:
    if ts is None:
        return None
    return ensure_utc(ts).isoformat()


def _ts_from_str(value: Optional[str]) -> Optional[datetime]:
    if value is None:
        return None
    # fromisoformat() before 3.11 rejects the "Z" suffix other writers use
    if isinstance(value, str) and value.endswith("Z"):
        value = value[:-1] + "+00:00"
    return ensure_utc(datetime.fromisoformat(value))


def request_to_dict(request: ConsumptionRequest) -> Dict[str, Any]:
    data = {
        "id": request.id,
        "requesterId": request.requester_id,
        "requesterName": request.requester_name,
        "targetUserId": request.target_user_id,
        "message": request.message,
        "photoUrl": request.photo_url,
        "timestamp": _ts_to_str(request.timestamp),
        "status": request.status,
    }
    # approvals stays absent until the first approval
    if request.approvals:
        data["approvals"] = request.approvals
    return data


def _require_object(what: str, data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise TypeError(f"{what} must be an object, got {type(data).__name__}")
    return data


def request_from_dict(data: Dict[str, Any]) -> ConsumptionRequest:
    _require_object("Request", data)
    return ConsumptionRequest(
        id=data["id"],
        requester_id=data["requesterId"],
        target_user_id=data["targetUserId"],
        timestamp=_ts_from_str(data["timestamp"]),
        requester_name=data.get("requesterName", ""),
        message=data.get("message"),
        photo_url=data.get("photoUrl"),
        status=data.get("status", STATUS_PENDING),
        _frozen_approvals=_freeze_approvals(data.get("approvals")),
    )


def account_to_dict(account: UserAccount) -> Dict[str, Any]:
    data = {
        "currentTokens": account.current_tokens,
        "maxTokens": account.max_tokens,
        "lastRefresh": _ts_to_str(account.last_refresh),
        "pendingRequests": [request_to_dict(r) for r in account.pending_requests],
        "sharedTokens": account.shared_tokens,
    }
    if account.has_booster:
        data["boosterActive"] = account.booster_active
        data["boosterStart"] = _ts_to_str(account.booster_start)
        data["boosterNoes"] = account.booster_noes
    return data


def account_from_dict(party_id: str, data: Dict[str, Any]) -> UserAccount:
    data = {_LEGACY_KEYS.get(k, k): v for k, v in _require_object(f"Account {party_id}", data).items()}
    if not isinstance(data.get("pendingRequests", []), list):
        raise TypeError("pendingRequests must be a list")
    booster = {}
    if "boosterActive" in data:
        booster = {
            "booster_active": bool(data["boosterActive"]),
            "booster_start": _ts_from_str(data.get("boosterStart")),
            "booster_noes": data.get("boosterNoes", 0),
        }
        # maintenance needs a start to time the window from
        if booster["booster_active"] and booster["booster_start"] is None:
            raise ValueError("Active booster has no boosterStart")
    return UserAccount(
        party_id=party_id,
        current_tokens=data["currentTokens"],
        max_tokens=data["maxTokens"],
        last_refresh=_ts_from_str(data["lastRefresh"]),
        shared_tokens=data.get("sharedTokens", 0),
        pending_requests=tuple(request_from_dict(r) for r in data.get("pendingRequests", [])),
        **booster,
    )


def state_to_dict(state: LedgerState) -> Dict[str, Any]:
    """Serialize the ledger to its persisted layout, keyed by party id."""
    return {account.party_id: account_to_dict(account) for account in state}


def state_from_dict(data: Any) -> LedgerState:
    """
    Parse the persisted layout back into a LedgerState.

    Unknown keys inside an account (such as a display name written by an
    older server) are ignored.

    Raises:
        StoreError: If the record is missing a party or a field, or holds
                    values that fail validation.
    """
    if not isinstance(data, dict):
        raise StoreError(f"Ledger record must be an object, got {type(data).__name__}")
    missing = [p for p in PARTIES if p not in data]
    if missing:
        raise StoreError(f"Ledger record is missing accounts: {missing}")
    try:
        return LedgerState(tuple(account_from_dict(p, data[p]) for p in PARTIES))
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise StoreError(f"Malformed ledger record: {e!r}") from e


# ============================================================================
# STORES
# ============================================================================

class MemoryStore:
    """
    In-process LedgerStore.

    The record is kept serialized, so nothing the caller holds aliases the
    stored copy.

    Example:
        store = MemoryStore(clock=lambda: datetime(2025, 1, 1, tzinfo=timezone.utc))
        state = store.load()        # defaults created and saved
        store.save(state)
    """

    def __init__(
        self,
        initial: Optional[LedgerState] = None,
        clock: Callable[[], datetime] = utc_now,
    ):
        self._clock = clock
        self._record: Optional[str] = None
        self.save_count = 0
        if initial is not None:
            self.save(initial)

    def load(self) -> LedgerState:
        if self._record is None:
            state = default_state(self._clock())
            self.save(state)
            return state
        return state_from_dict(json.loads(self._record))

    def save(self, state: LedgerState) -> None:
        self._record = json.dumps(state_to_dict(state))
        self.save_count += 1

    def exists(self) -> bool:
        return self._record is not None


class JsonFileStore:
    """
    LedgerStore backed by a single JSON file.

    save() writes a temporary file next to the target and os.replace()s it,
    so a later load() sees either the old record or the new one, never a
    partial write. The parent directory is created on first save.
    """

    def __init__(
        self,
        path: Union[str, Path],
        clock: Callable[[], datetime] = utc_now,
    ):
        self.path = Path(path)
        self._clock = clock

    def exists(self) -> bool:
        return self.path.exists()

    def load(self) -> LedgerState:
        """
        Read the ledger, creating the default record if the file does not exist.

        Raises:
            StoreError: If the file is not valid JSON or has the wrong shape.
        """
        if not self.path.exists():
            state = default_state(self._clock())
            self.save(state)
            return state
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise StoreError(f"Ledger file {self.path} is not valid JSON: {e}") from e
        return state_from_dict(data)

    def save(self, state: LedgerState) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(
            dir=self.path.parent, prefix=f".{self.path.name}.", suffix=".tmp"
        )
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(state_to_dict(state), fh, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise
