"""QueryGroups - finds, creates and forgets query groups by key."""

from __future__ import annotations

import itertools
import logging
from collections.abc import Sequence
from typing import Any

from tagquery.clocks.base import Clock
from tagquery.group import Query, QueryGroup
from tagquery.keys import ActionIdentifier, get_group_key
from tagquery.tags import Tag
from tagquery.types import QueryAction, QueryOptions, RetrySetting

logger = logging.getLogger(__name__)

MISSING: Any = object()


class QueryGroups:
    """Registry of live query groups.

    A group is created by the first query for its key and removed when its
    last subscriber leaves; the group reports that through ``on_dispose``.
    """

    def __init__(self, *, clock: Clock, retries: RetrySetting = None) -> None:
        self._clock = clock
        self._retries = retries
        self._action_ids = ActionIdentifier()
        self._subscriber_ids = itertools.count()
        self._groups: dict[str, QueryGroup] = {}

    def __len__(self) -> int:
        return len(self._groups)

    def create_query(
        self,
        action: QueryAction,
        args: Sequence[Any],
        options: QueryOptions[Any] | None = None,
    ) -> Query[Any]:
        group = self.get_group(action, args)
        return group.subscribe(options)

    def get_group(self, action: QueryAction, args: Sequence[Any]) -> QueryGroup:
        """Return the group for (action, args), creating it if needed."""
        key = get_group_key(self._action_ids(action), args)

        group = self._groups.get(key)
        if group is None:
            group = QueryGroup(
                action,
                args,
                key=key,
                clock=self._clock,
                subscriber_ids=self._subscriber_ids,
                retries=self._retries,
                on_dispose=self._forget,
            )
            self._groups[key] = group
            logger.debug("Created query group %s", key)

        return group

    def has_group(self, action: QueryAction, args: Sequence[Any]) -> bool:
        action_id = self._action_ids.get(action)
        if action_id is None:
            return False
        return get_group_key(action_id, args) in self._groups

    def get_groups_by_tags(self, tags: Sequence[Tag]) -> list[QueryGroup]:
        if not tags:
            return []
        return [group for group in self._groups.values() if group.has_tag(tags)]

    def get_groups_by_action(
        self, action: QueryAction, args: Sequence[Any] = MISSING
    ) -> list[QueryGroup]:
        action_id = self._action_ids.get(action)
        if action_id is None:
            return []

        if args is not MISSING:
            group = self._groups.get(get_group_key(action_id, args))
            return [group] if group is not None else []

        return [group for group in self._groups.values() if group.action == action]

    def clear(self) -> None:
        """Dispose every group."""
        for group in list(self._groups.values()):
            group.dispose()
        self._groups.clear()

    def _forget(self, group: QueryGroup) -> None:
        if self._groups.get(group.key) is group:
            del self._groups[group.key]
