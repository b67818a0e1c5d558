"""Tag definition and utilities."""

from __future__ import annotations

import itertools
import json
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, overload

from tagquery.types import QueryTags

_tag_ids = itertools.count()


def get_tag_key(tag_id: int, value: Any) -> str:
    """Combine a tag id and its value into the key used for lookups."""
    return f"{tag_id}-{json.dumps(value, sort_keys=True, default=str)}"


@dataclass(frozen=True, slots=True)
class Tag:
    """An invalidation label, optionally carrying a value."""

    id: int
    name: str
    key: str
    value: Any = field(default=None, compare=False, hash=False)

    def __repr__(self) -> str:
        if self.value is None:
            return f"Tag({self.name})"
        return f"Tag({self.name}={self.value!r})"


class TagFactory:
    """Produces tags sharing one identity, parameterized by a value.

    Usage:
        user = tag("user", lambda user: user["id"])
        user({"id": 1})  # Tag(user=1)
    """

    __slots__ = ("_id", "name", "_callback")

    def __init__(self, tag_id: int, name: str, callback: Callable[[Any], Any]) -> None:
        self._id = tag_id
        self.name = name
        self._callback = callback

    def __call__(self, value: Any) -> Tag:
        tag_value = self._callback(value)
        return Tag(
            id=self._id,
            name=self.name,
            key=get_tag_key(self._id, tag_value),
            value=tag_value,
        )

    def __repr__(self) -> str:
        return f"TagFactory({self.name})"


@overload
def tag(name: str) -> Tag: ...


@overload
def tag(name: str, callback: Callable[[Any], Any]) -> TagFactory: ...


def tag(name: str, callback: Callable[[Any], Any] | None = None) -> Tag | TagFactory:
    """
    Define a tag. Every call creates a new identity, so two tags with the
    same name are still distinct.

    Example:
        users = tag("users")                         # Tag
        user = tag("user", lambda user: user.id)     # TagFactory

        user(current_user)  # Tag keyed on current_user.id
    """
    tag_id = next(_tag_ids)

    if callback is not None:
        return TagFactory(tag_id, name, callback)

    return Tag(id=tag_id, name=name, key=get_tag_key(tag_id, None))


def is_tag(value: Any) -> bool:
    return isinstance(value, Tag)


def is_tag_list(value: Any) -> bool:
    """A list or tuple made only of tags (an empty one counts)."""
    return isinstance(value, (list, tuple)) and all(isinstance(t, Tag) for t in value)


def get_all_tags(tags: QueryTags | None, data: Any) -> list[Tag]:
    """Resolve declared tags, calling the derivation callback with ``data``."""
    if tags is None:
        return []

    if callable(tags):
        return list(tags(data))

    return list(tags)


def as_tag_list(tags: Tag | Sequence[Tag]) -> list[Tag]:
    if isinstance(tags, Tag):
        return [tags]
    return list(tags)
