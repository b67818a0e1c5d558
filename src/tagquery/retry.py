"""Retry policies: normalizing, reducing across subscribers, and running.

Every subscriber of a group shares one execution, so the group honors the
most demanding subscriber: the highest retry count and the shortest delay.
"""

from __future__ import annotations

import inspect
import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping, Sequence
from typing import Any, TypeVar

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    stop_after_attempt,
    wait_fixed,
)

from tagquery.duration import parse_duration
from tagquery.types import QueryAction, RetryOptions, RetrySetting

T = TypeVar("T")
logger = logging.getLogger(__name__)

DEFAULT_RETRY_OPTIONS = RetryOptions(count=0, delay=500)


def normalize_retry_options(setting: RetrySetting) -> RetryOptions:
    """Turn any accepted retry setting into a full RetryOptions.

    Missing fields fall back to DEFAULT_RETRY_OPTIONS.
    """
    if setting is None:
        return DEFAULT_RETRY_OPTIONS

    if isinstance(setting, RetryOptions):
        count, delay = setting.count, setting.delay
    elif isinstance(setting, bool):
        raise TypeError(f"Invalid retry setting: {setting!r}")
    elif isinstance(setting, int):
        count, delay = setting, DEFAULT_RETRY_OPTIONS.delay
    elif isinstance(setting, Mapping):
        unknown = set(setting) - {"count", "delay"}
        if unknown:
            raise ValueError(f"Unknown retry options: {sorted(unknown)}")
        count = setting.get("count", DEFAULT_RETRY_OPTIONS.count)
        delay = setting.get("delay", DEFAULT_RETRY_OPTIONS.delay)
    else:
        raise TypeError(f"Invalid retry setting: {setting!r}")

    if count < 0:
        raise ValueError(f"Retry count must be >= 0, got {count}")

    return RetryOptions(count=count, delay=parse_duration(delay))


def reduce_retry_options(settings: Iterable[RetrySetting]) -> RetryOptions:
    """Merge settings into one policy: max count, min delay."""
    result = DEFAULT_RETRY_OPTIONS
    for setting in settings:
        options = normalize_retry_options(setting)
        result = RetryOptions(
            count=max(options.count, result.count),
            delay=min(options.delay, result.delay),
        )
    return result


async def invoke(action: QueryAction, args: Sequence[Any]) -> Any:
    """Call an action, awaiting its result if it returned an awaitable."""
    result = action(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


async def retry(
    action: QueryAction,
    args: Sequence[Any],
    options: RetryOptions,
    *,
    sleep: Callable[[float], Awaitable[None]],
) -> Any:
    """Run ``action(*args)``, retrying up to ``options.count`` more times.

    Only the final failure is raised, as the original exception.

    Args:
        action: Sync or async callable
        args: Positional arguments for the action
        options: Effective retry policy
        sleep: Clock sleep taking milliseconds
    """

    async def sleep_seconds(seconds: float) -> None:
        await sleep(seconds * 1000)

    retrying = AsyncRetrying(
        stop=stop_after_attempt(options.count + 1),
        wait=wait_fixed(options.delay / 1000),
        reraise=True,
        sleep=sleep_seconds,
        before_sleep=before_sleep_log(logger, logging.DEBUG),
    )

    async for attempt in retrying:
        with attempt:
            result = await invoke(action, args)
    return result


__all__ = [
    "DEFAULT_RETRY_OPTIONS",
    "normalize_retry_options",
    "reduce_retry_options",
    "retry",
]
