"""Core types for tagquery."""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import (
    TYPE_CHECKING,
    Any,
    Generic,
    TypeVar,
)

if TYPE_CHECKING:
    from tagquery.tags import Tag

T = TypeVar("T")

# Duration type alias
Duration = str | int | float  # "30s", "5m", "2h", "1d" or milliseconds

QueryAction = Callable[..., Any]
QueryDataSetter = Callable[[Any], Any]

# Static list of tags, or a callback deriving tags from the latest data
QueryTags = Sequence["Tag"] | Callable[[Any], Sequence["Tag"]]


@dataclass(frozen=True, slots=True)
class RetryOptions:
    """Effective retry policy: extra attempts and the delay between them."""

    count: int = 0
    delay: int | float = 500  # milliseconds


# A bare retry count, a full or partial policy, or nothing
RetrySetting = int | RetryOptions | Mapping[str, Any] | None


@dataclass(frozen=True, slots=True)
class QueryOptions(Generic[T]):
    """Per-subscriber options for a query."""

    placeholder: Any = None
    interval: Duration | None = None
    retries: RetrySetting = None
    tags: QueryTags | None = None
    on_success: Callable[[T], Any] | None = None
    on_error: Callable[[BaseException], Any] | None = None
    immediate: bool = True


@dataclass(frozen=True, slots=True)
class MutationContext(Generic[T]):
    """What a mutation hook knows at the point it runs."""

    payload: tuple[Any, ...]
    data: T | None = None
    error: BaseException | None = None


@dataclass(frozen=True, slots=True)
class MutationOptions(Generic[T]):
    """Options for a single mutation."""

    placeholder: Any = None
    retries: RetrySetting = None
    tags: QueryTags | None = None
    on_execute: Callable[[MutationContext[T]], Any] | None = None
    on_success: Callable[[MutationContext[T]], Any] | None = None
    on_error: Callable[[MutationContext[T]], Any] | None = None
    set_query_data_before: Callable[[Any, MutationContext[T]], Any] | None = None
    set_query_data_after: Callable[[Any, MutationContext[T]], Any] | None = None
    refresh_query_data: bool = True
