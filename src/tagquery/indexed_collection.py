"""IndexedCollection - a store with secondary indexes on item attributes."""

from __future__ import annotations

import itertools
from collections.abc import Hashable, Iterable, Iterator
from operator import attrgetter
from typing import Any, Generic, TypeVar

T = TypeVar("T")

_ALL: Any = object()


class IndexedCollection(Generic[T]):
    """Items looked up and deleted by any of the indexed attributes.

    Each index maps an attribute value to the ids of items holding it, so
    finding or deleting touches only the matching items.

    Usage:
        items = IndexedCollection[Pair](["left", "right"])
        items.add(Pair(left="a", right=1))
        items.find("right", 1)      # [Pair(left="a", right=1)]
        items.delete("left", "a")
    """

    def __init__(self, index_keys: Iterable[str], items: Iterable[T] = ()) -> None:
        self._index_keys = tuple(index_keys)
        self._getters = {key: attrgetter(key) for key in self._index_keys}
        self._items: dict[int, T] = {}
        # value -> item ids; dicts keep insertion order
        self._indexes: dict[str, dict[Hashable, dict[int, None]]] = {
            key: {} for key in self._index_keys
        }
        self._next_id = itertools.count()

        for item in items:
            self.add(item)

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[T]:
        return iter(list(self._items.values()))

    def add(self, item: T) -> None:
        item_id = next(self._next_id)
        self._items[item_id] = item

        for key, getter in self._getters.items():
            self._indexes[key].setdefault(getter(item), {})[item_id] = None

    def delete(self, index: str, value: Hashable) -> list[T]:
        """Remove every item whose ``index`` attribute equals ``value``."""
        item_ids = self._indexes[index].pop(value, None)
        if not item_ids:
            return []

        removed: list[T] = []
        for item_id in item_ids:
            item = self._items.pop(item_id)
            removed.append(item)

            for key, getter in self._getters.items():
                if key == index:
                    continue
                self._discard(key, getter(item), item_id)

        return removed

    def find(self, index: str, value: Hashable = _ALL) -> list[T]:
        """Items whose ``index`` attribute equals ``value``, or all items."""
        if value is _ALL:
            return list(self._items.values())

        item_ids = self._indexes[index].get(value, {})
        return [self._items[item_id] for item_id in item_ids]

    def has(self, index: str, value: Hashable) -> bool:
        return value in self._indexes[index]

    def clear(self) -> None:
        self._items.clear()
        for index in self._indexes.values():
            index.clear()

    def _discard(self, index: str, value: Hashable, item_id: int) -> None:
        item_ids = self._indexes[index].get(value)
        if item_ids is None:
            return
        item_ids.pop(item_id, None)
        if not item_ids:
            del self._indexes[index][value]
