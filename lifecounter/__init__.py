"""
lifecounter - Two-Party Life Counter

Two fixed parties share a pool of countable tokens ("noes"). Consuming a token
needs both parties to confirm, tokens can be shared between the parties, the
balance refreshes every calendar month, and party B can run a 7-day booster.

Usage:
    from lifecounter import LifeCounter, JsonFileStore, PARTY_A, PARTY_B

    counter = LifeCounter(JsonFileStore("data/lives.json"))

    # A reports that B used a token; both confirm
    result = counter.request_consumption(PARTY_A, PARTY_B)
    counter.approve(PARTY_B, result.request_id)
    counter.approve(PARTY_A, result.request_id)

    # Give two tokens to the other party
    counter.share(PARTY_A, PARTY_B, 2)

    counter.view(PARTY_A)
"""

# Core types
from .core import (
    ConsumptionRequest,
    UserAccount,
    LedgerState,
    ExecuteResult,
    LifeCounterError,
    NotFound,
    InsufficientBalance,
    Forbidden,
    AlreadyActive,
    InvalidAmount,
    DuplicateRequest,
    StoreError,
    PARTY_A,
    PARTY_B,
    PARTIES,
    BOOSTER_PARTY,
    BOOSTER_BONUS,
    BOOSTER_WINDOW_DAYS,
    DEFAULT_MAX_TOKENS,
    DEFAULT_PARTY_NAMES,
    DEFAULT_REQUEST_MESSAGE,
    DEFAULT_REQUEST_PHOTO_URL,
    STATUS_PENDING,
    STATUS_APPROVED,
    other_party,
    require_party,
    default_account,
    default_state,
    verify_invariants,
)

# Time policy
from .clock import (
    utc_now,
    months_elapsed,
    days_elapsed,
    booster_days_left,
)

# Persistence
from .store import (
    LedgerStore,
    MemoryStore,
    JsonFileStore,
    state_to_dict,
    state_from_dict,
)

# Rules engine
from .rules import (
    Transition,
    maintain_refresh,
    maintain_booster_lapse,
    run_maintenance,
    request_consumption,
    approve_consumption,
    deny_consumption,
    share_tokens,
    activate_booster,
)

# Notifications
from .notifications import (
    Notification,
    NotificationHub,
    ALL_KINDS,
    REQUEST_CREATED,
    TOKEN_CONSUMED,
    REQUEST_DENIED,
    TOKENS_SHARED,
    BOOSTER_ACTIVATED,
)

# Stateful counter
from .counter import (
    LifeCounter,
    OperationResult,
    OperationRecord,
    project_state,
)

from .config import LifeCounterConfig

__all__ = [
    # Core
    'ConsumptionRequest', 'UserAccount', 'LedgerState', 'ExecuteResult',
    'LifeCounterError', 'NotFound', 'InsufficientBalance', 'Forbidden',
    'AlreadyActive', 'InvalidAmount', 'DuplicateRequest', 'StoreError',
    'PARTY_A', 'PARTY_B', 'PARTIES', 'BOOSTER_PARTY', 'BOOSTER_BONUS',
    'BOOSTER_WINDOW_DAYS', 'DEFAULT_MAX_TOKENS', 'DEFAULT_PARTY_NAMES',
    'DEFAULT_REQUEST_MESSAGE', 'DEFAULT_REQUEST_PHOTO_URL',
    'STATUS_PENDING', 'STATUS_APPROVED',
    'other_party', 'require_party', 'default_account', 'default_state',
    'verify_invariants',
    # Time policy
    'utc_now', 'months_elapsed', 'days_elapsed', 'booster_days_left',
    # Persistence
    'LedgerStore', 'MemoryStore', 'JsonFileStore', 'state_to_dict', 'state_from_dict',
    # Rules
    'Transition', 'maintain_refresh', 'maintain_booster_lapse', 'run_maintenance',
    'request_consumption', 'approve_consumption', 'deny_consumption',
    'share_tokens', 'activate_booster',
    # Notifications
    'Notification', 'NotificationHub', 'ALL_KINDS',
    'REQUEST_CREATED', 'TOKEN_CONSUMED', 'REQUEST_DENIED', 'TOKENS_SHARED',
    'BOOSTER_ACTIVATED',
    # Counter
    'LifeCounter', 'OperationResult', 'OperationRecord', 'project_state',
    'LifeCounterConfig',
]

__version__ = '1.0.0'
