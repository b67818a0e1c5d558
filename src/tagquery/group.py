"""QueryGroup - the shared cache entry for one (action, arguments) key.

A group owns the data, error and execution flags that all of its
subscribers observe. It runs at most one execution at a time and decides
when the next one happens from whatever its current subscribers ask for:
- the shortest requested interval wins
- the most demanding retry policy wins
- tags are rebuilt from the latest data after every successful execution
"""

from __future__ import annotations

import asyncio
import logging
import math
from collections.abc import Callable, Generator, Iterator, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

from tagquery.clocks.base import Clock
from tagquery.duration import parse_duration
from tagquery.errors import QueryFailure
from tagquery.interval import IntervalController
from tagquery.retry import reduce_retry_options, retry
from tagquery.tag_index import TagIndex
from tagquery.tags import Tag, as_tag_list, get_all_tags
from tagquery.types import QueryAction, QueryOptions, RetryOptions, RetrySetting

T = TypeVar("T")
logger = logging.getLogger(__name__)

_UNSET: Any = object()


@dataclass(slots=True)
class Subscription:
    """One consumer's registration against a group."""

    id: int
    options: QueryOptions[Any]
    interval: float  # milliseconds, math.inf when not polling
    enabled: bool  # False until an immediate=False subscriber executes once


class QueryGroup:
    """Shared state and scheduling for every subscriber of one cache key."""

    def __init__(
        self,
        action: QueryAction,
        args: Sequence[Any],
        *,
        key: str,
        clock: Clock,
        subscriber_ids: Iterator[int],
        retries: RetrySetting = None,
        on_dispose: Callable[[QueryGroup], None] | None = None,
    ) -> None:
        self.action = action
        self.args = tuple(args)
        self.key = key
        self._clock = clock
        self._subscriber_ids = subscriber_ids
        self._retries = retries
        self._on_dispose = on_dispose

        self._interval = IntervalController(clock)
        self._tags = TagIndex()
        self._subscribers: dict[int, Subscription] = {}
        self._last_subscriber_id = -1
        self._notify_up_to = -1

        self._data: Any = _UNSET
        self.error: BaseException | None = None
        self.errored = False
        self.executing = False
        self.executed = False
        self.last_executed_at: float | None = None

        self._task: asyncio.Task[Any] | None = None
        self._settled: asyncio.Future[Any] | None = None
        self._disposed = False

    def __repr__(self) -> str:
        return f"QueryGroup({self.key!r}, subscribers={len(self._subscribers)})"

    @property
    def data(self) -> Any:
        return None if self._data is _UNSET else self._data

    @property
    def has_data(self) -> bool:
        return self._data is not _UNSET

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)

    @property
    def interval(self) -> float:
        """Effective polling interval: the shortest any enabled subscriber wants."""
        return min(
            (s.interval for s in self._subscribers.values() if s.enabled),
            default=math.inf,
        )

    @property
    def retry_options(self) -> RetryOptions:
        """Effective retry policy across the group default and all subscribers."""
        return reduce_retry_options(
            [self._retries, *(s.options.retries for s in self._subscribers.values())]
        )

    # -------------------------------------------------------------------------
    # Subscribers
    # -------------------------------------------------------------------------

    def subscribe(self, options: QueryOptions[Any] | None = None) -> Query[Any]:
        if self._disposed:
            raise RuntimeError(f"Query group {self.key} has been disposed")

        options = options or QueryOptions()
        subscription = Subscription(
            id=next(self._subscriber_ids),
            options=options,
            interval=(
                parse_duration(options.interval)
                if options.interval is not None
                else math.inf
            ),
            enabled=options.immediate,
        )
        self._subscribers[subscription.id] = subscription
        self._last_subscriber_id = subscription.id

        self._tags.add_all_tags(self._get_tags(subscription), subscription.id)
        self._schedule()

        return Query(self, subscription)

    def unsubscribe(self, subscription_id: int) -> None:
        if self._subscribers.pop(subscription_id, None) is None:
            return

        self._tags.remove_all_tags_by_subscriber_id(subscription_id)
        self._schedule()

        if not self._subscribers:
            self.dispose()

    def dispose(self) -> None:
        """Stop scheduling and let the owner forget this group."""
        if self._disposed:
            return

        self._disposed = True
        self._interval.clear()
        self._subscribers.clear()
        self._tags.clear()
        logger.debug("Disposed query group %s", self.key)

        if self._on_dispose is not None:
            self._on_dispose(self)

    # -------------------------------------------------------------------------
    # Tags and data
    # -------------------------------------------------------------------------

    def has_tag(self, tags: Tag | Sequence[Tag]) -> bool:
        return any(self._tags.has(tag) for tag in as_tag_list(tags))

    def get_data(self) -> Any:
        return self.data

    def set_data(self, value: Any) -> None:
        """Overwrite data without executing; flags and tags are left alone."""
        self._data = value

    def _get_tags(self, subscription: Subscription) -> list[Tag]:
        tags = subscription.options.tags
        # derived tags need data to derive from
        if callable(tags) and not self.has_data:
            return []

        try:
            return get_all_tags(tags, self.data)
        except Exception:
            logger.exception(
                "Deriving tags for subscriber %d of query group %s failed",
                subscription.id,
                self.key,
            )
            return []

    def _rebuild_tags(self) -> None:
        self._tags.clear()
        for subscription in list(self._subscribers.values()):
            self._tags.add_all_tags(self._get_tags(subscription), subscription.id)

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute(self) -> Any:
        """Run the action now, or join the execution already in flight.

        Returns the new data or raises the action's error.
        """
        outcome = await asyncio.shield(self._start())
        if isinstance(outcome, QueryFailure):
            raise outcome.error
        return outcome

    def refresh(self) -> asyncio.Task[Any]:
        """Start an execution whose failure is logged rather than raised."""
        return self._start_scheduled()

    async def settled(self) -> Any:
        """Outcome of the in-flight or next execution.

        Once the group has executed and is idle, the current state is the
        outcome. Failures come back as QueryFailure, never raised.
        """
        if self.executed and not self.executing:
            return self._current_outcome()

        if self._settled is None:
            self._settled = asyncio.get_running_loop().create_future()
        return await asyncio.shield(self._settled)

    def _current_outcome(self) -> Any:
        if self.errored:
            return QueryFailure(self.error)  # type: ignore[arg-type]
        return self.data

    def _start(self) -> asyncio.Task[Any]:
        if self._task is None:
            self.executing = True
            self.last_executed_at = self._clock.now()
            # subscribers arriving after this point miss this execution's callbacks
            self._notify_up_to = self._last_subscriber_id
            self._task = asyncio.get_running_loop().create_task(self._run())
        return self._task

    def _start_scheduled(self) -> asyncio.Task[Any]:
        if self._task is not None:
            return self._task

        task = self._start()
        task.add_done_callback(self._log_failure)
        return task

    async def _run(self) -> Any:
        try:
            value = await retry(
                self.action,
                self.args,
                self.retry_options,
                sleep=self._clock.sleep,
            )
        except Exception as error:
            outcome: Any = self._set_error(error)
        else:
            outcome = self._set_result(value)
        finally:
            self.executing = False
            self.executed = True
            self._task = None
            self._schedule()

        return outcome

    def _set_result(self, value: Any) -> Any:
        self._data = value
        self.error = None
        self.errored = False

        self._notify("on_success", value)
        self._rebuild_tags()
        self._resolve(value)
        return value

    def _set_error(self, error: Exception) -> QueryFailure:
        self.error = error
        self.errored = True

        self._notify("on_error", error)
        failure = QueryFailure(error)
        self._resolve(failure)
        return failure

    def _notify(self, callback_name: str, value: Any) -> None:
        # the live table is read on every step, so a subscriber disposed by
        # an earlier callback is skipped
        for subscription_id in list(self._subscribers):
            if subscription_id > self._notify_up_to:
                continue
            subscription = self._subscribers.get(subscription_id)
            if subscription is None:
                continue

            callback = getattr(subscription.options, callback_name)
            if callback is None:
                continue

            try:
                callback(value)
            except Exception:
                logger.exception(
                    "%s callback of subscriber %d failed for query group %s",
                    callback_name,
                    subscription_id,
                    self.key,
                )

    def _resolve(self, outcome: Any) -> None:
        settled, self._settled = self._settled, None
        if settled is not None and not settled.done():
            settled.set_result(outcome)

    def _log_failure(self, task: asyncio.Task[Any]) -> None:
        if task.cancelled():
            return
        outcome = task.result()
        if isinstance(outcome, QueryFailure):
            logger.warning(
                "Scheduled execution of query group %s failed",
                self.key,
                exc_info=outcome.error,
            )

    # -------------------------------------------------------------------------
    # Scheduling
    # -------------------------------------------------------------------------

    def _next_delay(self) -> float:
        if not any(s.enabled for s in self._subscribers.values()):
            return math.inf

        if self.last_executed_at is None:
            return 0

        interval = self.interval
        if interval == math.inf:
            return math.inf

        elapsed = self._clock.now() - self.last_executed_at
        return max(0, interval - elapsed)

    def _schedule(self) -> None:
        if self._disposed:
            return
        self._interval.set(self._on_interval, self._next_delay())

    def _on_interval(self) -> None:
        # the running execution re-arms the timer when it settles
        if self.executing:
            return
        self._start_scheduled()


class Query(Generic[T]):
    """A subscriber's handle on a query group.

    Reads go straight to the shared group, so every handle on the same key
    sees the same data. Awaiting the handle waits for the first outcome this
    subscriber can see and then keeps returning it.

    Usage:
        with await client.query(get_user, [1]) as query:
            print(query.data)
    """

    __slots__ = ("_group", "_subscription", "_outcome", "_disposed")

    def __init__(self, group: QueryGroup, subscription: Subscription) -> None:
        self._group = group
        self._subscription = subscription
        self._outcome: Any = _UNSET
        self._disposed = False

    def __repr__(self) -> str:
        return (
            f"Query({self._group.key!r}, id={self._subscription.id}, "
            f"executed={self.executed}, errored={self.errored})"
        )

    @property
    def id(self) -> int:
        return self._subscription.id

    @property
    def group(self) -> QueryGroup:
        return self._group

    @property
    def data(self) -> T | Any:
        if self._group.has_data:
            return self._group.data
        return self._subscription.options.placeholder

    @property
    def error(self) -> BaseException | None:
        return self._group.error

    @property
    def errored(self) -> bool:
        return self._group.errored

    @property
    def executing(self) -> bool:
        return self._group.executing

    @property
    def executed(self) -> bool:
        return self._group.executed

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def execute(self) -> T:
        """Execute now. Also switches an ``immediate=False`` query on for good."""
        self._subscription.enabled = True
        return await self._group.execute()

    def dispose(self) -> None:
        """Release this subscription. Safe to call more than once."""
        if self._disposed:
            return
        self._disposed = True
        self._group.unsubscribe(self._subscription.id)

    def __enter__(self) -> Query[T]:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    def __await__(self) -> Generator[Any, None, Query[T]]:
        return self._wait().__await__()

    async def _wait(self) -> Query[T]:
        if self._outcome is _UNSET:
            self._outcome = await self._group.settled()

        if isinstance(self._outcome, QueryFailure):
            raise self._outcome.error
        return self
