# ===============================
# File: state_encoder.py
# ===============================
from __future__ import annotations
from typing import Optional

NONE_STATE = "none"  # no object tracked


def discretize(x: float) -> int:
    """Bucket a world coordinate to the nearest integer (width 1.0).

    Python's round() is round-half-to-even: 0.5 -> 0, 1.5 -> 2, 2.5 -> 2,
    -1.5 -> -2. Keys are persisted, so this must never change.
    """
    return int(round(float(x)))


def encode(receptacle_x: float, target_x: Optional[float]) -> str:
    """(receptacle_x, target_x) -> "<int>,<int>", or "none" without a target."""
    if target_x is None:
        return NONE_STATE
    return f"{discretize(receptacle_x)},{discretize(target_x)}"


class StateEncoder:
    """Callable wrapper so the agent can take the encoder as a dependency."""

    def encode(self, receptacle_x: float, target_x: Optional[float]) -> str:
        return encode(receptacle_x, target_x)

    __call__ = encode
