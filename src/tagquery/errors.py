"""Error types for tagquery."""

from dataclasses import dataclass


@dataclass(frozen=True, slots=True)
class QueryFailure:
    """A failed execution, carried as a value.

    Futures shared between waiters resolve with this marker instead of
    holding the exception, so a failure nobody awaits never surfaces as an
    unretrieved exception. Whoever awaits on behalf of a caller unwraps it
    and re-raises ``error``.
    """

    error: BaseException


class InvalidSelectorError(TypeError):
    """Raised when a cache operation is given something that is neither a tag,
    a list of tags, nor an action."""
