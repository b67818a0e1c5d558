"""QueryClient - the public API.

Provides:
- query(): subscribe to a shared, deduplicated execution of an action
- set_query_data(): rewrite cached data by tag or action
- refresh_query_data(): force re-execution by tag or action
- mutate(): run a write action and update the queries it affects
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Sequence
from typing import Any, TypeVar

from tagquery.clocks.base import Clock
from tagquery.clocks.loop import LoopClock
from tagquery.errors import InvalidSelectorError
from tagquery.group import Query, QueryGroup
from tagquery.mutation import Mutation
from tagquery.registry import MISSING, QueryGroups
from tagquery.retry import normalize_retry_options
from tagquery.tags import Tag, TagFactory, is_tag, is_tag_list
from tagquery.types import (
    Duration,
    MutationContext,
    MutationOptions,
    QueryAction,
    QueryDataSetter,
    QueryOptions,
    QueryTags,
    RetrySetting,
)

T = TypeVar("T")

# A tag, a list of tags, or an action
Selector = Tag | Sequence[Tag] | QueryAction


class QueryClient:
    """Request cache shared by every query made through it.

    Usage:
        client = QueryClient(retries=2)

        users = await client.query(get_users, [], interval="30s", tags=[users_tag])
        client.set_query_data(users_tag, lambda users: [*users, new_user])
        await client.mutate(delete_user, [1], tags=[users_tag])
        users.dispose()
    """

    def __init__(
        self,
        *,
        retries: RetrySetting = None,
        clock: Clock | None = None,
    ) -> None:
        normalize_retry_options(retries)
        self._retries = retries
        self._clock = clock or LoopClock()
        self._groups = QueryGroups(clock=self._clock, retries=retries)

    @property
    def clock(self) -> Clock:
        return self._clock

    def query(
        self,
        action: Callable[..., Any],
        args: Sequence[Any] = (),
        *,
        placeholder: Any = None,
        interval: Duration | None = None,
        retries: RetrySetting = None,
        tags: QueryTags | None = None,
        on_success: Callable[[Any], Any] | None = None,
        on_error: Callable[[BaseException], Any] | None = None,
        immediate: bool = True,
    ) -> Query[Any]:
        """Subscribe to ``action(*args)``.

        Every query with the same action and equal arguments shares one
        execution and one result. The returned handle must be disposed.

        Args:
            action: Sync or async callable; its identity is part of the key
            args: Positional arguments, compared by their JSON form
            placeholder: ``data`` until the first successful execution
            interval: Re-execute this often while subscribed
            retries: Retry count or {"count", "delay"}
            tags: Tags, or a callable deriving tags from the data
            on_success: Called with the data after each successful execution
            on_error: Called with the error after each failed execution
            immediate: When False, nothing runs until ``execute()`` is called

        Returns:
            An awaitable Query handle
        """
        normalize_retry_options(retries)
        options: QueryOptions[Any] = QueryOptions(
            placeholder=placeholder,
            interval=interval,
            retries=retries,
            tags=tags,
            on_success=on_success,
            on_error=on_error,
            immediate=immediate,
        )
        return self._groups.create_query(action, args, options)

    def has_query_group(self, action: QueryAction, args: Sequence[Any] = ()) -> bool:
        return self._groups.has_group(action, args)

    def get_query_groups(
        self, target: Selector, args: Sequence[Any] = MISSING
    ) -> list[QueryGroup]:
        """Groups matching a tag, a list of tags, an action or an action and args."""
        if is_tag(target):
            if args is not MISSING:
                raise InvalidSelectorError("A tag selector takes no arguments")
            return self._groups.get_groups_by_tags([target])  # type: ignore[list-item]

        if is_tag_list(target):
            if args is not MISSING:
                raise InvalidSelectorError("A tag selector takes no arguments")
            return self._groups.get_groups_by_tags(list(target))  # type: ignore[arg-type]

        if isinstance(target, TagFactory):
            raise InvalidSelectorError(
                f"{target!r} is a tag factory; call it with a value to get a tag"
            )

        if callable(target):
            if args is not MISSING and not isinstance(args, (list, tuple)):
                raise InvalidSelectorError(
                    f"Expected a list of arguments, got {type(args).__name__}"
                )
            return self._groups.get_groups_by_action(target, args)

        raise InvalidSelectorError(
            f"Expected Tag, list of Tags or action, got {type(target).__name__}"
        )

    def set_query_data(
        self,
        target: Selector,
        args_or_setter: Sequence[Any] | QueryDataSetter,
        setter: QueryDataSetter | None = None,
    ) -> None:
        """Replace cached data with ``setter(current)`` without executing.

        Usage:
            client.set_query_data(users_tag, lambda users: users[1:])
            client.set_query_data(get_user, lambda user: {**user, "seen": True})
            client.set_query_data(get_user, [1], lambda user: None)

        ``current`` is None for a query that holds no data yet. If the setter
        raises for any group, no group is changed and the error propagates.
        """
        if setter is None:
            groups = self.get_query_groups(target)
            setter = args_or_setter  # type: ignore[assignment]
        else:
            groups = self.get_query_groups(target, args_or_setter)  # type: ignore[arg-type]

        if not callable(setter):
            raise InvalidSelectorError(
                f"Expected a setter callable, got {type(setter).__name__}"
            )

        # all or nothing: a raising setter leaves every group as it was
        updates = [(group, setter(group.get_data())) for group in groups]
        for group, value in updates:
            group.set_data(value)

    def refresh_query_data(
        self, target: Selector, args: Sequence[Any] = MISSING
    ) -> asyncio.Future[list[Any]]:
        """Execute every matching query now.

        A query already executing is joined, not restarted. The returned
        future resolves once all of them settle; failures are reported to
        each query's subscribers and logged, not raised here.
        """
        groups = self.get_query_groups(target, args)
        return asyncio.gather(*(group.refresh() for group in groups))

    def mutate(
        self,
        action: Callable[..., Any],
        args: Sequence[Any] = (),
        *,
        placeholder: Any = None,
        retries: RetrySetting = None,
        tags: QueryTags | None = None,
        on_execute: Callable[[MutationContext[Any]], Any] | None = None,
        on_success: Callable[[MutationContext[Any]], Any] | None = None,
        on_error: Callable[[MutationContext[Any]], Any] | None = None,
        set_query_data_before: Callable[[Any, MutationContext[Any]], Any]
        | None = None,
        set_query_data_after: Callable[[Any, MutationContext[Any]], Any]
        | None = None,
        refresh_query_data: bool = True,
    ) -> Mutation[Any]:
        """Run ``action(*args)`` once, updating queries that share its tags.

        The mutation starts right away; await it for the result.

        Args:
            action: Sync or async callable
            args: Positional arguments
            placeholder: ``data`` until the action succeeds
            retries: Retry count or {"count", "delay"}
            tags: Tags of the queries this mutation affects, or a callable
                deriving them from the result (called with None beforehand)
            on_execute: Called with the context before the action runs
            on_success: Called with the context after success
            on_error: Called with the context after failure
            set_query_data_before: (data, context) -> data, applied before
                the action runs
            set_query_data_after: (data, context) -> data, applied after
                success
            refresh_query_data: Re-execute the tagged queries after success

        Returns:
            An awaitable Mutation handle
        """
        normalize_retry_options(retries)
        options: MutationOptions[Any] = MutationOptions(
            placeholder=placeholder,
            retries=retries,
            tags=tags,
            on_execute=on_execute,
            on_success=on_success,
            on_error=on_error,
            set_query_data_before=set_query_data_before,
            set_query_data_after=set_query_data_after,
            refresh_query_data=refresh_query_data,
        )
        mutation: Mutation[Any] = Mutation(
            action,
            args,
            options,
            clock=self._clock,
            set_query_data=self.set_query_data,
            refresh_query_data=self.refresh_query_data,
            retries=self._retries,
        )
        mutation.start()
        return mutation

    def clear(self) -> None:
        """Dispose every query group. Existing handles stop updating."""
        self._groups.clear()


def create_query_client(
    *,
    retries: RetrySetting = None,
    clock: Clock | None = None,
) -> QueryClient:
    """Create a query client.

    Args:
        retries: Default retry setting for every query and mutation
        clock: Time source for intervals and retry delays (default: the
            running event loop)

    Returns:
        QueryClient instance with query, set_query_data, refresh_query_data,
        mutate and clear
    """
    return QueryClient(retries=retries, clock=clock)


__all__ = ["QueryClient", "create_query_client"]
