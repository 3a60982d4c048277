"""
Pool-scoped keyed storage for the rewards engine.

Everything the engine persists goes through `RewardsStorage`:
  • the active `Campaign` and the `PoolAccrualState` singleton,
  • one `UserAccrualState` per user,
  • index pages keyed by (level, page_number), each a mapping epoch -> per-share value.

Writes issued inside `transaction()` are buffered and only reach the committed
state when the block exits normally, so a call either persists all of its
writes or none of them. Every keyed access is metered in `stats`.
"""
from __future__ import annotations

from collections import Counter
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Dict, Hashable, Iterator, Optional, Tuple

from .errors import ReentrancyError, StorageKeyMissing


# =============================================================================
# Data model
# =============================================================================

@dataclass(frozen=True)
class Campaign:
    rate: int = 0         # tokens emitted per unit time
    expires_at: int = 0   # instant the emission stops


@dataclass(frozen=True)
class PoolAccrualState:
    epoch: int = 0        # accrual transitions so far
    accumulated: int = 0  # tokens generated over the pool's life
    last_sync: int = 0    # instant of the last accrual computation


@dataclass(frozen=True)
class UserAccrualState:
    last_epoch: int                # pool epoch at the last settlement
    checkpoint_accumulated: int    # pool accumulated at the last settlement
    unclaimed: int = 0


@dataclass
class StorageStats:
    """Read/write counters per key kind ("campaign", "pool", "user", "page")."""
    reads: Counter = field(default_factory=Counter)
    writes: Counter = field(default_factory=Counter)

    @property
    def total_reads(self) -> int:
        return sum(self.reads.values())

    @property
    def total_writes(self) -> int:
        return sum(self.writes.values())

    def reset(self) -> None:
        self.reads.clear()
        self.writes.clear()


Key = Tuple[Hashable, ...]


# =============================================================================
# Storage
# =============================================================================

class RewardsStorage:
    """In-memory key-value store scoped to a single pool instance."""

    def __init__(self, reward_token: str, custody_account: str):
        self.reward_token = reward_token
        self.custody_account = custody_account
        self.stats = StorageStats()
        self._data: Dict[Key, Any] = {}
        self._pending: Optional[Dict[Key, Any]] = None

    # ----- transactions -----
    @property
    def in_transaction(self) -> bool:
        return self._pending is not None

    @contextmanager
    def transaction(self) -> Iterator["RewardsStorage"]:
        if self._pending is not None:
            raise ReentrancyError("pool call re-entered while another call is in progress")
        self._pending = {}
        try:
            yield self
        except BaseException:
            self._pending = None
            raise
        pending, self._pending = self._pending, None
        self._data.update(pending)

    # ----- raw access -----
    def _lookup(self, key: Key) -> Any:
        self.stats.reads[key[0]] += 1
        if self._pending is not None and key in self._pending:
            return self._pending[key]
        return self._data.get(key)

    def _store(self, key: Key, value: Any) -> None:
        self.stats.writes[key[0]] += 1
        target = self._pending if self._pending is not None else self._data
        target[key] = value

    # ----- campaign -----
    def get_campaign(self) -> Campaign:
        campaign = self._lookup(("campaign",))
        if campaign is None:
            raise StorageKeyMissing("campaign")
        return campaign

    def set_campaign(self, campaign: Campaign) -> None:
        self._store(("campaign",), campaign)

    # ----- pool accrual state -----
    def get_pool_state(self) -> PoolAccrualState:
        state = self._lookup(("pool",))
        if state is None:
            raise StorageKeyMissing("pool")
        return state

    def set_pool_state(self, state: PoolAccrualState) -> None:
        self._store(("pool",), state)

    # ----- user accrual state -----
    def get_user_state(self, user: Hashable) -> Optional[UserAccrualState]:
        return self._lookup(("user", user))

    def set_user_state(self, user: Hashable, state: UserAccrualState) -> None:
        self._store(("user", user), state)

    # ----- index pages -----
    def has_index_page(self, level: int, page_number: int) -> bool:
        key = ("page", level, page_number)
        if self._pending is not None and key in self._pending:
            return True
        return key in self._data

    def get_index_page(self, level: int, page_number: int) -> Dict[int, int]:
        page = self._lookup(("page", level, page_number))
        return dict(page) if page is not None else {}

    def set_index_page(self, level: int, page_number: int, page: Dict[int, int]) -> None:
        self._store(("page", level, page_number), dict(page))
