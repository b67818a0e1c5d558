"""tagquery - Deduplicated, tag-invalidated request cache for asyncio."""

# Clocks
from tagquery.clocks import Clock, LoopClock, ManualClock

# Client API
from tagquery.client import QueryClient, create_query_client

# Duration parsing
from tagquery.duration import parse_duration
from tagquery.errors import InvalidSelectorError, QueryFailure
from tagquery.group import Query, QueryGroup
from tagquery.mutation import Mutation
from tagquery.retry import DEFAULT_RETRY_OPTIONS, reduce_retry_options
from tagquery.tags import Tag, TagFactory, tag

# Core types
from tagquery.types import (
    Duration,
    MutationContext,
    MutationOptions,
    QueryOptions,
    RetryOptions,
)

__version__ = "0.1.0"

__all__ = [
    "DEFAULT_RETRY_OPTIONS",
    "Clock",
    "Duration",
    "InvalidSelectorError",
    "LoopClock",
    "ManualClock",
    "Mutation",
    "MutationContext",
    "MutationOptions",
    "Query",
    "QueryClient",
    "QueryFailure",
    "QueryGroup",
    "QueryOptions",
    "RetryOptions",
    "Tag",
    "TagFactory",
    "create_query_client",
    "parse_duration",
    "reduce_retry_options",
    "tag",
]
