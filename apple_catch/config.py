# ===============================
# File: config.py
# ===============================
from __future__ import annotations
from dataclasses import dataclass, field, fields, replace
from typing import Mapping, Optional, Union, get_args, get_origin, get_type_hints
import os

from dotenv import load_dotenv

from .catch_agent import AgentConfig
from .catch_env import CatchConfig
from .catch_trainer import LoopConfig
from .errors import ConfigError

ENV_PREFIX = "APPLE_CATCH_"


@dataclass
class Settings:
    agent: AgentConfig = field(default_factory=AgentConfig)
    env: CatchConfig = field(default_factory=CatchConfig)
    loop: LoopConfig = field(default_factory=LoopConfig)


def _field_type(tp):
    """(base type, optional) for an annotation such as `float` or `Optional[int]`."""
    if get_origin(tp) is Union:
        args = [a for a in get_args(tp) if a is not type(None)]
        return args[0], len(args) < len(get_args(tp))
    return tp, False


def _parse(name: str, raw: str, tp):
    """Coerce an env string to the annotated type of the config field."""
    base, optional = _field_type(tp)
    try:
        if optional and raw.strip().lower() in ("", "none"):
            return None
        if base is bool:
            v = raw.strip().lower()
            if v in ("1", "true", "yes", "on"):
                return True
            if v in ("0", "false", "no", "off"):
                return False
            raise ValueError(raw)
        if base in (int, float):
            return base(raw)
        return raw
    except ValueError as e:
        raise ConfigError(f"{ENV_PREFIX}{name}={raw!r}: cannot parse ({e})") from e


def _overrides(cfg, environ: Mapping[str, str]):
    hints = get_type_hints(type(cfg))
    changes = {}
    for f in fields(cfg):
        key = f.name.upper()
        raw = environ.get(ENV_PREFIX + key)
        if raw is None:
            continue
        changes[f.name] = _parse(key, raw, hints[f.name])
    # replace() re-runs __post_init__, so config validation still applies
    return replace(cfg, **changes) if changes else cfg


def load_settings(dotenv_path: Optional[str] = None,
                  environ: Optional[Mapping[str, str]] = None) -> Settings:
    """Defaults <- .env <- process environment (APPLE_CATCH_<FIELD>).

    Field names are shared across the three configs only where they mean the
    same thing; `seed` applies to both the agent and the simulator.
    """
    if environ is None:
        load_dotenv(dotenv_path)
        environ = os.environ
    s = Settings()
    s.agent = _overrides(s.agent, environ)
    s.env = _overrides(s.env, environ)
    s.loop = _overrides(s.loop, environ)
    return s
