"""TagIndex - which subscribers of a group hold which tags."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass

from tagquery.indexed_collection import IndexedCollection
from tagquery.tags import Tag


@dataclass(frozen=True, slots=True)
class TagAssociation:
    tag_key: str
    subscriber_id: int
    tag: Tag


class TagIndex:
    """Many-to-many index between tag keys and subscriber ids.

    Both directions are indexed, so dropping a subscriber or checking a tag
    only touches the associations involved.
    """

    def __init__(self) -> None:
        self._associations: IndexedCollection[TagAssociation] = IndexedCollection(
            ["tag_key", "subscriber_id"]
        )

    def __len__(self) -> int:
        return len(self._associations)

    def has(self, tag: Tag) -> bool:
        return self._associations.has("tag_key", tag.key)

    def get_tags_by_subscriber_id(self, subscriber_id: int) -> list[Tag]:
        return [a.tag for a in self._associations.find("subscriber_id", subscriber_id)]

    def add_all_tags(self, tags: Iterable[Tag], subscriber_id: int) -> None:
        held = {tag.key for tag in self.get_tags_by_subscriber_id(subscriber_id)}

        for tag in tags:
            if tag.key in held:
                continue
            held.add(tag.key)
            self._associations.add(TagAssociation(tag.key, subscriber_id, tag))

    def remove_all_tags_by_subscriber_id(self, subscriber_id: int) -> None:
        self._associations.delete("subscriber_id", subscriber_id)

    def clear(self) -> None:
        self._associations.clear()
