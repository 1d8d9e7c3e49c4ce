# ===============================
# File: errors.py
# ===============================
from __future__ import annotations


class AppleCatchError(Exception):
    """Base class for every error raised by the apple_catch package."""


class CorruptStateError(AppleCatchError):
    """A persisted Q-table exists but cannot be decoded."""

    def __init__(self, path, reason: str):
        self.path = path
        self.reason = reason
        super().__init__(f"corrupt Q-table at {path}: {reason}")


class InvalidActionIndex(AppleCatchError, IndexError):
    """Action index outside the fixed action set (table schema mismatch)."""

    def __init__(self, action, n_actions: int):
        self.action = action
        self.n_actions = n_actions
        super().__init__(f"action index {action!r} not in range(0, {n_actions})")


class InvalidHyperparameter(AppleCatchError, ValueError):
    """A config value is outside its allowed range."""

    def __init__(self, name: str, value, expected: str):
        self.name = name
        self.value = value
        super().__init__(f"{name}={value!r} is invalid: expected {expected}")


class ConfigError(AppleCatchError, ValueError):
    """An environment override could not be parsed."""
