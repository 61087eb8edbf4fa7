from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .errors import DiceValidationError


DEFAULT_MAX_REROLLS = 100
DEFAULT_MAX_EXPRESSION_LENGTH = 1000
DEFAULT_CACHE_SIZE = 100
DEFAULT_MAX_EXECUTION_TIME_MS = 5000
# Practical ceiling for dice whose true maximum is unbounded.
DEFAULT_EXPLODE_MULTIPLIER = 6

_ENV_PREFIX = "DICE_"
_TRUE_VALUES = {"1", "true", "yes", "on"}
_FALSE_VALUES = {"0", "false", "no", "off"}


@dataclass(frozen=True)
class EngineConfig:
    max_rerolls: int = DEFAULT_MAX_REROLLS
    max_expression_length: int = DEFAULT_MAX_EXPRESSION_LENGTH
    enable_caching: bool = True
    cache_size: int = DEFAULT_CACHE_SIZE
    max_execution_time: int = DEFAULT_MAX_EXECUTION_TIME_MS
    explode_multiplier: int = DEFAULT_EXPLODE_MULTIPLIER
    seed: int | None = None

    def __post_init__(self) -> None:
        for name in ("max_rerolls", "max_expression_length", "cache_size", "max_execution_time", "explode_multiplier"):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool) or value <= 0:
                raise DiceValidationError(f"Option '{name}' must be a positive integer, got {value!r}")

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> EngineConfig:
        """Build a config from DICE_* environment variables, falling back to defaults."""

        env = os.environ if environ is None else environ
        options: dict[str, object] = {}

        for name in ("max_rerolls", "max_expression_length", "cache_size", "max_execution_time", "explode_multiplier", "seed"):
            raw = env.get(_ENV_PREFIX + name.upper())
            if raw is None or not raw.strip():
                continue
            options[name] = _parse_int(name, raw)

        raw_caching = env.get(_ENV_PREFIX + "ENABLE_CACHING")
        if raw_caching is not None and raw_caching.strip():
            options["enable_caching"] = _parse_bool("enable_caching", raw_caching)

        return cls(**options)


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw.strip())
    except ValueError:
        raise DiceValidationError(f"Option '{name}' must be an integer, got {raw!r}") from None


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    raise DiceValidationError(f"Option '{name}' must be a boolean, got {raw!r}")
