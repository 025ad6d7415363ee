"""
Environment variable loading for behaviorguard.

Every EngineConfig field can be overridden with BEHAVIORGUARD_<FIELD_NAME>
(upper case), e.g. BEHAVIORGUARD_MIN_TRACKING_MS=8000. Channel weights use
BEHAVIORGUARD_WEIGHT_<CHANNEL>. Loads .env from the working directory when
available.
"""

from __future__ import annotations

import os
from dataclasses import MISSING, fields
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from behaviorguard.core.exceptions import ConfigurationError

ENV_PREFIX = "BEHAVIORGUARD_"
WEIGHT_PREFIX = ENV_PREFIX + "WEIGHT_"
_TRUE_VALUES = ("1", "true", "yes", "on")
_FALSE_VALUES = ("0", "false", "no", "off")


def load_behaviorguard_env(path: Path | None = None) -> None:
    """Load .env (default: ./.env). Safe to call multiple times; existing env wins."""
    env_path = path or Path.cwd() / ".env"
    if env_path.is_file():
        load_dotenv(env_path, override=False)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise ConfigurationError(name, f"expected a boolean, got {raw!r}")


def _coerce(name: str, raw: str, default: Any) -> Any:
    if isinstance(default, bool):
        return _parse_bool(name, raw)
    try:
        if isinstance(default, int):
            return int(raw)
        if isinstance(default, float):
            return float(raw)
    except ValueError as e:
        raise ConfigurationError(name, f"expected a number, got {raw!r}") from e
    return raw.strip()


def read_env_overrides(path: Path | None = None) -> dict[str, Any]:
    """
    Collect EngineConfig keyword arguments from the environment.

    Only variables that are set appear in the result.
    """
    from behaviorguard.config.settings import ChannelWeights, EngineConfig

    load_behaviorguard_env(path)
    out: dict[str, Any] = {}
    for f in fields(EngineConfig):
        if f.name == "weights" or f.default is MISSING:
            continue
        raw = os.getenv(ENV_PREFIX + f.name.upper())
        if raw is None or raw.strip() == "":
            continue
        out[f.name] = _coerce(f.name, raw, f.default)

    weights: dict[str, float] = {}
    for f in fields(ChannelWeights):
        raw = os.getenv(WEIGHT_PREFIX + f.name.upper())
        if raw is None or raw.strip() == "":
            continue
        weights[f.name] = _coerce(f"weights.{f.name}", raw, f.default)
    if weights:
        out["weights"] = ChannelWeights(**weights)
    return out
