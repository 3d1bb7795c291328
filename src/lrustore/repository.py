"""Bounded, disk-persisted LRU repository."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Hashable
from typing import TYPE_CHECKING

from lrustore.config import DEFAULT_MAX_SIZE, DEFAULT_SAVE_DELAY, as_max_size, as_save_delay
from lrustore.entry import Entry
from lrustore.errors import LruStoreSaveError
from lrustore.recency import RecencyIndex
from lrustore.validation import purge_invalid, validate_entry, validate_repository

if TYPE_CHECKING:  # pragma: no cover
    from lrustore.storage import PickleStorage

logger = logging.getLogger("lrustore.repository")


class Repository:
    """A named LRU cache whose state is persisted through a storage backend.

    The lookup table and the recency index are only ever mutated together by
    the methods below.  Reads (`get`, `has`) do not refresh recency; only
    `put` does.

    Persistence is throttled: mutations call `save()` which writes at most
    once per `save_delay` seconds unless forced.
    """

    FORMAT_VERSION = "1"

    def __init__(
        self,
        name: str,
        *,
        storage: PickleStorage,
        max_size: int = DEFAULT_MAX_SIZE,
        save_delay: float = DEFAULT_SAVE_DELAY,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.name = name
        self.format_version = self.FORMAT_VERSION
        self.max_size = as_max_size(max_size, name="max_size")
        self.save_delay = as_save_delay(save_delay, name="save_delay")
        self.last_saved_at = 0.0
        self._detached = False
        self._storage = storage
        self._clock = clock
        self._table: dict[Hashable, Entry] = {}
        self._recency = RecencyIndex()

    def __repr__(self) -> str:
        return (
            f"Repository(name={self.name!r}, size={len(self._table)}, "
            f"max_size={self.max_size})"
        )

    def __len__(self) -> int:
        return len(self._table)

    @property
    def table(self) -> dict[Hashable, Entry]:
        """The key -> Entry mapping (treat as read-only)."""

        return self._table

    @property
    def recency(self) -> RecencyIndex:
        """The recency index (treat as read-only)."""

        return self._recency

    @property
    def storage(self) -> PickleStorage:
        return self._storage

    # -- reads -------------------------------------------------------------

    def get(self, key: Hashable, default: object = None) -> object:
        entry = self._table.get(key)
        if not validate_entry(entry):
            return default
        return entry.value

    def has(self, key: Hashable) -> bool:
        return validate_entry(self._table.get(key))

    def most_to_least_recent(self) -> list[Hashable]:
        return self._recency.most_to_least_recent()

    def least_to_most_recent(self) -> list[Hashable]:
        return self._recency.least_to_most_recent()

    # -- mutations ---------------------------------------------------------

    def put(self, key: Hashable, value: object) -> Entry:
        """Store `value` under `key` and make it the most recently used key.

        A full repository evicts its least recently used key first, even when
        `key` is already present and would simply be overwritten.
        """

        entry = value if isinstance(value, Entry) else Entry.wrap(value)

        if len(self._table) >= self.max_size:
            self._evict_oldest()

        self._table[key] = entry
        self._recency.push_front(key)
        self._autosave()
        return entry

    def invalidate(self, key: Hashable) -> None:
        self._recency.discard(key)
        self._table.pop(key, None)
        self._autosave()

    def clear(self) -> None:
        self._table.clear()
        self._recency.clear()
        self._autosave()

    def _evict_oldest(self) -> None:
        if not len(self._recency):
            return
        key = self._recency.pop_oldest()
        self._table.pop(key, None)
        logger.debug("Evicted %r from %s", key, self.name)
        self._autosave()

    # -- validation shortcuts ----------------------------------------------

    def validate(self) -> bool:
        return validate_repository(self)

    def purge_invalid(self) -> list[Hashable]:
        removed = purge_invalid(self)
        if removed:
            self._autosave()
        return removed

    # -- persistence -------------------------------------------------------

    def save(self, force: bool = False) -> bool:
        """Write the repository to storage.

        Returns False when the write was skipped because the last save is
        more recent than `save_delay`, or because the repository was
        detached from its registry.  Raises `LruStoreSaveError` if the
        write fails.
        """

        if self._detached:
            return False

        now = self._clock()
        if not force and (now - self.last_saved_at) <= self.save_delay:
            return False

        self.last_saved_at = now
        self.format_version = self.FORMAT_VERSION
        try:
            self._storage.write(self.name, self.to_state())
        except Exception as e:  # noqa: BLE001 - any write/pickle failure is a save failure
            raise LruStoreSaveError(
                f"Failed saving repository {self.name!r}: {type(e).__name__}: {e}"
            ) from e
        return True

    @property
    def detached(self) -> bool:
        return self._detached

    def detach(self) -> None:
        """Stop persisting this repository; later saves become no-ops."""

        self._detached = True

    def _autosave(self) -> None:
        # Best-effort; never fail a mutation because the disk write failed.
        try:
            self.save()
        except LruStoreSaveError as e:
            logger.warning("%s", e)

    def to_state(self) -> dict[str, object]:
        return {
            "format_version": self.format_version,
            "max_size": self.max_size,
            "save_delay": self.save_delay,
            "table": dict(self._table),
            "recency": self._recency.most_to_least_recent(),
        }

    def restore(self, state: object) -> None:
        """Replace this repository's contents with a persisted state dict.

        Raises on structurally malformed state; semantic checks are left to
        the validator.
        """

        if not isinstance(state, dict):
            raise TypeError(f"expected a state dict, got {type(state).__name__}")
        table = state["table"]
        recency = state["recency"]
        if not isinstance(table, dict):
            raise TypeError("persisted table must be a dict")
        if not isinstance(recency, (list, tuple)):
            raise TypeError("persisted recency must be a list")

        max_size = as_max_size(state["max_size"], name="max_size")
        save_delay = as_save_delay(state["save_delay"], name="save_delay")

        self._recency = RecencyIndex(recency)
        self._table = dict(table)
        self.format_version = state["format_version"]
        self.max_size = max_size
        self.save_delay = save_delay

    def reset(self, *, max_size: int, save_delay: float) -> None:
        """Return to a fresh, empty repository with the given options."""

        self._table = {}
        self._recency = RecencyIndex()
        self.format_version = self.FORMAT_VERSION
        self.max_size = as_max_size(max_size, name="max_size")
        self.save_delay = as_save_delay(save_delay, name="save_delay")
        self.last_saved_at = 0.0
