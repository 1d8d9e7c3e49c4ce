# ===============================
# File: q_table.py
# ===============================
from __future__ import annotations
from typing import Dict, Iterator, List, Mapping, Tuple
import numbers

import numpy as np

from .errors import InvalidActionIndex

N_ACTIONS = 3


class QTable:
    """Tabular action-values: state key -> float64[N_ACTIONS].

    Rows are created lazily (zero vector) the first time a state is touched
    and are never removed, so the table grows without bound over training.
    """

    def __init__(self, n_actions: int = N_ACTIONS):
        self.n_actions = n_actions
        self._q: Dict[str, np.ndarray] = {}

    # -------------- Lookup --------------
    def get_or_create(self, state: str) -> np.ndarray:
        row = self._q.get(state)
        if row is None:
            row = np.zeros(self.n_actions, dtype=np.float64)
            self._q[state] = row
        return row

    def value(self, state: str, action: int) -> float:
        self._check_action(action)
        return float(self.get_or_create(state)[action])

    def best_action(self, state: str) -> Tuple[int, float]:
        """Greedy action; np.argmax returns the first maximum, so ties go to the lowest index."""
        row = self.get_or_create(state)
        a = int(np.argmax(row))
        return a, float(row[a])

    def max_value(self, state: str) -> float:
        return float(np.max(self.get_or_create(state)))

    # -------------- Update --------------
    def update(self, state: str, action: int, target_value: float, learning_rate: float) -> float:
        """Q[s,a] <- (1-α)·Q[s,a] + α·target. Returns the new value."""
        self._check_action(action)
        row = self.get_or_create(state)
        row[action] = (1.0 - learning_rate) * row[action] + learning_rate * target_value
        return float(row[action])

    def _check_action(self, action) -> None:
        if isinstance(action, bool) or not isinstance(action, numbers.Integral):
            raise InvalidActionIndex(action, self.n_actions)
        if not 0 <= action < self.n_actions:
            raise InvalidActionIndex(action, self.n_actions)

    # -------------- Container protocol --------------
    def __len__(self) -> int:
        return len(self._q)

    def __contains__(self, state: object) -> bool:
        return state in self._q

    def __iter__(self) -> Iterator[str]:
        return iter(self._q)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, QTable):
            return NotImplemented
        if self.n_actions != other.n_actions or self._q.keys() != other._q.keys():
            return False
        return all(np.array_equal(v, other._q[k]) for k, v in self._q.items())

    def __repr__(self) -> str:
        return f"QTable(states={len(self)}, n_actions={self.n_actions})"

    # -------------- Serialization helpers --------------
    def to_dict(self) -> Dict[str, List[float]]:
        """Plain-python snapshot (detached from the live rows)."""
        return {k: [float(x) for x in v] for k, v in self._q.items()}

    snapshot = to_dict

    @classmethod
    def from_dict(cls, data: Mapping[str, List[float]], n_actions: int = N_ACTIONS) -> "QTable":
        table = cls(n_actions)
        for state, values in data.items():
            row = np.asarray(values, dtype=np.float64)
            if row.shape != (n_actions,):
                raise ValueError(f"state {state!r}: expected {n_actions} values, got shape {row.shape}")
            table._q[state] = row.copy()
        return table
