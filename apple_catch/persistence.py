# ===============================
# File: persistence.py
# ===============================
"""JSON persistence for the Q-table.

File layout (human readable, same shape the game has always written)::

    {
      "qTable": {
        "none":  [0.0, 0.0, 0.0],
        "-3,2":  [-0.95, 1.2, 4.7]
      }
    }

A missing file is a cold start. Anything else that does not decode into that
shape raises CorruptStateError.
"""
from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path
from typing import Dict, List, Optional, Union
import json
import logging
import math
import numbers
import os
import re
import tempfile

from .errors import CorruptStateError
from .q_table import QTable, N_ACTIONS
from .state_encoder import NONE_STATE

logger = logging.getLogger(__name__)

TABLE_FIELD = "qTable"
STATE_KEY_RE = re.compile(r"-?\d+,-?\d+")


def is_state_key(key: str) -> bool:
    return key == NONE_STATE or STATE_KEY_RE.fullmatch(key) is not None


class QTableStore:
    """save(table) / load() -> table against one JSON file.

    The file is opened and released inside each call. Saves go to a temp
    file in the same directory which is then renamed over the target, so a
    crash mid-write never leaves a half-written table behind.
    """

    def __init__(self, path: Union[str, Path], n_actions: int = N_ACTIONS):
        self.path = Path(path)
        self.n_actions = n_actions

    def exists(self) -> bool:
        return self.path.is_file()

    # -------------- Save --------------
    def save(self, table: QTable) -> None:
        self.save_snapshot(table.to_dict())

    def save_snapshot(self, snapshot: Dict[str, List[float]]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        payload = json.dumps({TABLE_FIELD: snapshot}, indent=2)
        fd, tmp = tempfile.mkstemp(prefix=self.path.name + ".", suffix=".tmp",
                                   dir=str(self.path.parent))
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp, self.path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise
        logger.debug("Q-table saved to %s (%d states)", self.path, len(snapshot))

    # -------------- Load --------------
    def load(self) -> QTable:
        if not self.exists():
            logger.warning("Q-table file %s not found, starting with an empty Q-table", self.path)
            return QTable(self.n_actions)
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CorruptStateError(self.path, f"not valid JSON ({e})") from e
        table = self.decode(data)
        logger.info("Q-table loaded from %s (%d states)", self.path, len(table))
        return table

    def decode(self, data) -> QTable:
        if not isinstance(data, dict) or TABLE_FIELD not in data:
            raise CorruptStateError(self.path, f"missing '{TABLE_FIELD}' field")
        mapping = data[TABLE_FIELD]
        if not isinstance(mapping, dict):
            raise CorruptStateError(self.path, f"'{TABLE_FIELD}' must be an object")
        for key, values in mapping.items():
            if not is_state_key(key):
                raise CorruptStateError(self.path, f"bad state key {key!r}")
            if not isinstance(values, list) or len(values) != self.n_actions:
                raise CorruptStateError(self.path, f"state {key!r}: expected a list of {self.n_actions} numbers")
            for v in values:
                if isinstance(v, bool) or not isinstance(v, numbers.Real) or math.isnan(v):
                    raise CorruptStateError(self.path, f"state {key!r}: non-numeric value {v!r}")
        return QTable.from_dict(mapping, self.n_actions)

    def quarantine(self) -> Optional[Path]:
        """Move a bad file aside to <path>.corrupt so the next save cannot overwrite it."""
        if not self.exists():
            return None
        dest = self.path.with_name(self.path.name + ".corrupt")
        os.replace(self.path, dest)
        return dest


class BackgroundSaver:
    """Writes table snapshots on one worker thread.

    The snapshot is taken by the caller (the decision tick), so the written
    data is exactly the table at that moment. One worker means writes to the
    file never overlap. flush() waits for every pending write, then re-raises
    the first write error, if any.
    """

    def __init__(self, store: QTableStore):
        self.store = store
        self._pool = ThreadPoolExecutor(max_workers=1, thread_name_prefix="qtable-save")
        self._pending: List[Future] = []

    def __call__(self, table: QTable) -> None:
        self.submit(table)

    def submit(self, table: QTable) -> Future:
        snap = table.snapshot()
        fut = self._pool.submit(self.store.save_snapshot, snap)
        self._pending = [f for f in self._pending if not f.done() or f.exception() is not None]
        self._pending.append(fut)
        return fut

    def flush(self) -> None:
        pending, self._pending = self._pending, []
        errors = [e for e in (fut.exception() for fut in pending) if e is not None]
        if errors:
            raise errors[0]

    def close(self) -> None:
        try:
            self.flush()
        finally:
            self._pool.shutdown(wait=True)
