"""Recency ordering for repository keys."""

from __future__ import annotations

from collections import OrderedDict
from collections.abc import Hashable, Iterable, Iterator


class RecencyIndex:
    """Ordered set of keys, most recently used first.

    Backed by an ``OrderedDict`` whose *end* is the most recent key, so
    move-to-front and pop-oldest are both O(1).
    """

    __slots__ = ("_keys",)

    def __init__(self, keys: Iterable[Hashable] = ()) -> None:
        self._keys: OrderedDict[Hashable, None] = OrderedDict()
        # `keys` is given most-recent-first.
        for key in reversed(list(keys)):
            if key in self._keys:
                raise ValueError(f"duplicate key in recency sequence: {key!r}")
            self._keys[key] = None

    def __len__(self) -> int:
        return len(self._keys)

    def __contains__(self, key: object) -> bool:
        return key in self._keys

    def __iter__(self) -> Iterator[Hashable]:
        return reversed(self._keys)

    def push_front(self, key: Hashable) -> None:
        """Make `key` the most recently used key, inserting it if needed."""

        self._keys[key] = None
        self._keys.move_to_end(key)

    def discard(self, key: Hashable) -> bool:
        if key not in self._keys:
            return False
        del self._keys[key]
        return True

    def pop_oldest(self) -> Hashable:
        key, _ = self._keys.popitem(last=False)
        return key

    def clear(self) -> None:
        self._keys.clear()

    def most_to_least_recent(self) -> list[Hashable]:
        return list(reversed(self._keys))

    def least_to_most_recent(self) -> list[Hashable]:
        return list(self._keys)
