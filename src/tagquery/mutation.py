"""Mutation - a one-shot action that updates cached queries around it."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Generator, Sequence
from typing import Any, Generic, TypeVar

from tagquery.clocks.base import Clock
from tagquery.errors import QueryFailure
from tagquery.retry import reduce_retry_options, retry
from tagquery.tags import Tag, get_all_tags
from tagquery.types import (
    MutationContext,
    MutationOptions,
    QueryAction,
    QueryDataSetter,
    RetrySetting,
)

T = TypeVar("T")
logger = logging.getLogger(__name__)

SetQueryDataByTags = Callable[[list[Tag], QueryDataSetter], None]
RefreshQueryDataByTags = Callable[[list[Tag]], Any]


class Mutation(Generic[T]):
    """Runs an action exactly once. Not cached, deduplicated or polled.

    Around the action, queries carrying the mutation's tags are updated:
    - ``set_query_data_before`` is applied before the action runs
    - ``set_query_data_after`` is applied once it succeeds
    - the tagged queries are then refreshed, unless ``refresh_query_data``
      is False

    A failed action skips the after hook and the refresh. Whatever the
    before hook wrote stays written. A failing after hook or refresh is
    logged; the mutation still succeeds and ``on_success`` still runs.
    """

    def __init__(
        self,
        action: QueryAction,
        args: Sequence[Any],
        options: MutationOptions[T] | None = None,
        *,
        clock: Clock,
        set_query_data: SetQueryDataByTags,
        refresh_query_data: RefreshQueryDataByTags,
        retries: RetrySetting = None,
    ) -> None:
        self._action = action
        self._args = tuple(args)
        self._options = options or MutationOptions()
        self._clock = clock
        self._set_query_data = set_query_data
        self._refresh_query_data = refresh_query_data
        self._retries = reduce_retry_options([retries, self._options.retries])

        self._data: Any = None
        self._has_data = False
        self.error: BaseException | None = None
        self.errored = False
        self.executing = False
        self.executed = False
        self._task: asyncio.Task[Any] | None = None

    def __repr__(self) -> str:
        return f"Mutation(executed={self.executed}, errored={self.errored})"

    @property
    def data(self) -> T | Any:
        if self._has_data:
            return self._data
        return self._options.placeholder

    def start(self) -> asyncio.Task[Any]:
        if self._task is None:
            self.executing = True
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def __await__(self) -> Generator[Any, None, Mutation[T]]:
        return self._wait().__await__()

    async def _wait(self) -> Mutation[T]:
        outcome = await asyncio.shield(self.start())
        if isinstance(outcome, QueryFailure):
            raise outcome.error
        return self

    async def _run(self) -> Any:
        options = self._options
        context: MutationContext[T] = MutationContext(payload=self._args)

        try:
            if options.set_query_data_before is not None:
                before = options.set_query_data_before
                self._set_query_data(
                    self._get_tags(None), lambda data: before(data, context)
                )
            self._call(options.on_execute, context)

            value = await retry(
                self._action, self._args, self._retries, sleep=self._clock.sleep
            )
        except Exception as error:
            outcome: Any = self._set_error(error)
        else:
            outcome = self._set_result(value)
        finally:
            self.executing = False
            self.executed = True

        return outcome

    def _set_result(self, value: T) -> T:
        options = self._options
        context = MutationContext(payload=self._args, data=value)

        self._data = value
        self._has_data = True
        self.error = None
        self.errored = False

        tags = self._get_tags(value)
        if options.set_query_data_after is not None:
            after = options.set_query_data_after
            try:
                self._set_query_data(tags, lambda data: after(data, context))
            except Exception:
                logger.exception(
                    "Updating query data after mutation %r failed", self._action
                )
        if options.refresh_query_data:
            try:
                self._refresh_query_data(tags)
            except Exception:
                logger.exception(
                    "Refreshing query data after mutation %r failed", self._action
                )

        self._call(options.on_success, context)
        return value

    def _set_error(self, error: Exception) -> QueryFailure:
        self.error = error
        self.errored = True
        logger.debug("Mutation %r failed", self._action, exc_info=error)

        self._call(
            self._options.on_error, MutationContext(payload=self._args, error=error)
        )
        return QueryFailure(error)

    def _get_tags(self, data: Any) -> list[Tag]:
        try:
            return get_all_tags(self._options.tags, data)
        except Exception:
            logger.exception("Deriving tags for mutation %r failed", self._action)
            return []

    def _call(self, callback: Callable[[Any], Any] | None, context: Any) -> None:
        if callback is None:
            return
        try:
            callback(context)
        except Exception:
            logger.exception("Mutation callback %r failed", callback)
