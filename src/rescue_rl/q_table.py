"""
Shared tabular value store.

One QTable is shared by every learned agent of a training configuration
and survives environment resets. Snapshots are flat mappings
state key -> {action id -> value}.
"""

import json
import math
from typing import Dict, Iterator, Mapping

from rescue_env.config import NUM_ACTIONS


class SnapshotFormatError(ValueError):
    """A policy snapshot could not be loaded; the active table is unchanged."""


class QTable:
    """
    Mapping of abstract state keys to per-action value estimates.

    Unknown (state, action) pairs read as 0.0. Entries are created lazily
    on the first write.
    """

    def __init__(self, values: Dict[str, Dict[int, float]] = None):
        self._values: Dict[str, Dict[int, float]] = {}
        if values:
            self.load_snapshot(values)

    def get(self, state: str, action: int) -> float:
        row = self._values.get(state)
        if row is None:
            return 0.0
        return row.get(action, 0.0)

    def set(self, state: str, action: int, value: float) -> None:
        self._values.setdefault(state, {})[action] = value

    def state_values(self, state: str) -> Dict[int, float]:
        """Copy of the stored values for one state (may be empty)."""
        return dict(self._values.get(state, {}))

    def states(self) -> Iterator[str]:
        return iter(self._values)

    def num_entries(self) -> int:
        return sum(len(row) for row in self._values.values())

    def __len__(self) -> int:
        return len(self._values)

    def __contains__(self, state: str) -> bool:
        return state in self._values

    def clear(self) -> None:
        self._values = {}

    def copy(self) -> "QTable":
        """Independent clone (for per-agent private tables or evaluation)."""
        clone = QTable()
        clone._values = {state: dict(row) for state, row in self._values.items()}
        return clone

    # Snapshots

    def to_snapshot(self) -> Dict[str, Dict[int, float]]:
        return {state: dict(row) for state, row in self._values.items()}

    def load_snapshot(self, snapshot: Mapping) -> None:
        """
        Replace the whole table with a snapshot.

        The snapshot is validated completely before anything is replaced, so
        a malformed snapshot leaves the current table untouched.

        Raises:
            SnapshotFormatError: describing the first problem found
        """
        self._values = _validate_snapshot(snapshot)

    def to_json(self) -> str:
        return json.dumps({state: {str(a): v for a, v in row.items()} for state, row in self._values.items()})

    def load_json(self, text: str) -> None:
        try:
            snapshot = json.loads(text)
        except json.JSONDecodeError as e:
            raise SnapshotFormatError(f"Snapshot is not valid JSON: {e}") from e
        self.load_snapshot(snapshot)

    @classmethod
    def from_json(cls, text: str) -> "QTable":
        table = cls()
        table.load_json(text)
        return table


def _validate_snapshot(snapshot: Mapping) -> Dict[str, Dict[int, float]]:
    if not isinstance(snapshot, Mapping):
        raise SnapshotFormatError(f"Snapshot must be a mapping of state keys, got {type(snapshot).__name__}")

    values: Dict[str, Dict[int, float]] = {}
    for state, row in snapshot.items():
        if not isinstance(state, str):
            raise SnapshotFormatError(f"State key {state!r} is not a string")
        if not isinstance(row, Mapping):
            raise SnapshotFormatError(f"Entry for state {state!r} must be a mapping of action ids, got {type(row).__name__}")

        parsed: Dict[int, float] = {}
        for action, value in row.items():
            try:
                action_id = int(action)
            except (TypeError, ValueError):
                raise SnapshotFormatError(f"State {state!r}: action id {action!r} is not an integer") from None
            if isinstance(action, float) or str(action_id) != str(action).strip():
                raise SnapshotFormatError(f"State {state!r}: action id {action!r} is not an integer")
            if not 0 <= action_id < NUM_ACTIONS:
                raise SnapshotFormatError(f"State {state!r}: action id {action_id} outside 0..{NUM_ACTIONS - 1}")
            if isinstance(value, bool) or not isinstance(value, (int, float)):
                raise SnapshotFormatError(f"State {state!r}, action {action_id}: value {value!r} is not a number")
            if math.isnan(value):
                raise SnapshotFormatError(f"State {state!r}, action {action_id}: value is NaN")
            parsed[action_id] = float(value)
        values[state] = parsed
    return values
