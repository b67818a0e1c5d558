"""Shared pytest fixtures."""

import pytest

from tagquery import ManualClock, QueryClient, tag


@pytest.fixture
def clock() -> ManualClock:
    """Create a fresh ManualClock for each test."""
    return ManualClock()


@pytest.fixture
def client(clock: ManualClock) -> QueryClient:
    """Create a QueryClient driven by the manual clock."""
    return QueryClient(clock=clock)


@pytest.fixture
def tags() -> dict:
    """Create common tag definitions for tests."""
    return {
        "users": tag("users"),
        "user": tag("user", lambda user: user["id"]),
        "posts": tag("posts"),
    }


class Counter:
    """Action that counts its calls and returns the call number."""

    def __init__(self, fail_times: int = 0, error: Exception | None = None) -> None:
        self.calls: list[tuple] = []
        self._fail_times = fail_times
        self._error = error or RuntimeError("boom")

    @property
    def count(self) -> int:
        return len(self.calls)

    def __call__(self, *args):
        self.calls.append(args)
        if len(self.calls) <= self._fail_times:
            raise self._error
        return len(self.calls)


@pytest.fixture
def counter() -> Counter:
    return Counter()


@pytest.fixture
def make_counter() -> type[Counter]:
    return Counter
