"""Cache key derivation for (action, arguments) pairs."""

import itertools
import json
from collections.abc import Sequence
from typing import Any

from tagquery.types import QueryAction


def serialize_args(args: Sequence[Any]) -> str:
    """Canonical JSON for an argument list.

    Arguments that serialize identically share a key; values JSON can't
    represent fall back to ``str()``.
    """
    return json.dumps(list(args), sort_keys=True, default=str)


class ActionIdentifier:
    """Assigns each distinct action a stable sequence number, first seen wins."""

    def __init__(self) -> None:
        self._actions: dict[QueryAction, int] = {}
        self._next_id = itertools.count()

    def __call__(self, action: QueryAction) -> int:
        if action not in self._actions:
            self._actions[action] = next(self._next_id)
        return self._actions[action]

    def get(self, action: QueryAction) -> int | None:
        """Look up an action's id without assigning one."""
        return self._actions.get(action)


def get_group_key(action_id: int, args: Sequence[Any]) -> str:
    return f"{action_id}-{serialize_args(args)}"
