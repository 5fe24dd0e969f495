"""Configuration loader for the model cache."""

from __future__ import annotations

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional, Tuple, Union

import yaml
from jsonschema import Draft7Validator

from .errors import ConfigError
from .stats import Delegate, log_delegate

DEFAULT_TTL = 60 * 60
DEFAULT_LIMIT = 50

DEFAULT_METHODS: FrozenSet[str] = frozenset({
    "find_one",
    "find_and_count_all",
    "find_by_pk",
    "find_all",
    "count",
    "min",
    "max",
    "sum",
    "find",
    "find_and_count",
    "find_by_id",
    "find_by_primary",
    "all",
})

DEFAULT_UPDATE_METHODS: FrozenSet[str] = frozenset({
    "create",
    "bulk_create",
    "update",
    "destroy",
    "upsert",
    "find_or_build",
    "insert_or_update",
    "find_or_initialize",
    "update_attributes",
    "save",
})

TTL = Union[int, float, bool, None]

_MODEL_PROPERTIES: Dict[str, Any] = {
    "ttl": {"type": ["number", "boolean", "null"]},
    "methods": {"type": "array", "items": {"type": "string"}},
    "methods_update": {"type": "array", "items": {"type": "string"}},
    "limit": {"type": "integer", "minimum": 1},
    "clear_on_update": {"type": "boolean"},
}

CONFIG_SCHEMA: Dict[str, Any] = {
    "$schema": "http://json-schema.org/draft-07/schema#",
    "type": "object",
    "properties": {
        "defaults": {
            "type": "object",
            "properties": _MODEL_PROPERTIES,
            "additionalProperties": False,
        },
        "models": {
            "type": "object",
            "additionalProperties": {
                "type": ["object", "null"],
                "properties": _MODEL_PROPERTIES,
                "additionalProperties": False,
            },
        },
        "options": {
            "type": "object",
            "properties": {
                "debug": {"type": "boolean"},
                "ops": {"type": "integer", "minimum": 0},
            },
            "additionalProperties": False,
        },
    },
    "additionalProperties": False,
}

_validator = Draft7Validator(CONFIG_SCHEMA)


def validate_config(payload: Dict[str, Any]) -> None:
    errors = sorted(_validator.iter_errors(payload), key=lambda e: list(e.path))
    if errors:
        messages = ", ".join(
            f"{'.'.join(str(p) for p in error.path) or '<root>'}: {error.message}" for error in errors
        )
        raise ConfigError(f"cache config validation failed: {messages}")


@dataclass(frozen=True)
class CacheConfig:
    ttl: TTL = DEFAULT_TTL
    methods: FrozenSet[str] = DEFAULT_METHODS
    methods_update: FrozenSet[str] = DEFAULT_UPDATE_METHODS
    limit: int = DEFAULT_LIMIT
    clear_on_update: bool = True

    def __post_init__(self) -> None:
        if isinstance(self.limit, bool) or not isinstance(self.limit, int) or self.limit <= 0:
            raise ConfigError(f"limit must be a positive integer, got {self.limit!r}")
        if self.ttl is not None and not isinstance(self.ttl, (int, float)):
            raise ConfigError(f"ttl must be a number, false or null, got {self.ttl!r}")
        # Accept any iterable of names, store immutable sets
        object.__setattr__(self, "methods", frozenset(self.methods))
        object.__setattr__(self, "methods_update", frozenset(self.methods_update))

    @classmethod
    def from_dict(
        cls, data: Optional[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None
    ) -> "CacheConfig":
        merged = {**(defaults or {}), **(data or {})}
        unknown = set(merged) - set(_MODEL_PROPERTIES)
        if unknown:
            raise ConfigError(f"unknown cache config keys: {', '.join(sorted(unknown))}")
        return cls(
            ttl=merged.get("ttl", DEFAULT_TTL),
            methods=_names(merged.get("methods"), DEFAULT_METHODS),
            methods_update=_names(merged.get("methods_update"), DEFAULT_UPDATE_METHODS),
            limit=merged.get("limit", DEFAULT_LIMIT),
            clear_on_update=bool(merged.get("clear_on_update", True)),
        )


def _names(value: Optional[Iterable[str]], default: FrozenSet[str]) -> FrozenSet[str]:
    if value is None:
        return default
    if isinstance(value, str):
        raise ConfigError(f"method lists must be sequences of names, got {value!r}")
    return frozenset(value)


@dataclass(frozen=True)
class CacheOptions:
    debug: bool = False
    ops: float = 0
    delegate: Delegate = field(default=log_delegate, compare=False)

    def __post_init__(self) -> None:
        if isinstance(self.ops, bool) or not isinstance(self.ops, (int, float)) or self.ops < 0:
            raise ConfigError(f"ops must be a non-negative number of seconds, got {self.ops!r}")

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]], delegate: Optional[Delegate] = None) -> "CacheOptions":
        data = data or {}
        return cls(
            debug=bool(data.get("debug", False)),
            ops=data.get("ops") or 0,
            delegate=delegate or data.get("delegate") or log_delegate,
        )


def build_configs(
    models: Optional[Dict[str, Any]], defaults: Optional[Dict[str, Any]] = None
) -> Dict[str, CacheConfig]:
    configs: Dict[str, CacheConfig] = {}
    for name, value in (models or {}).items():
        if isinstance(value, CacheConfig):
            configs[name] = value
        else:
            configs[name] = CacheConfig.from_dict(value, defaults)
    return configs


ENV_MAP = {
    "options.debug": "MODEL_CACHE_DEBUG",
    "options.ops": "MODEL_CACHE_OPS",
    "defaults.ttl": "MODEL_CACHE_DEFAULT_TTL",
    "defaults.limit": "MODEL_CACHE_DEFAULT_LIMIT",
}

_TRUE = {"1", "true", "yes", "on"}


def load_yaml(path: Path) -> Dict[str, Any]:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def merge_env_overrides(config_data: Dict[str, Any]) -> Dict[str, Any]:
    merged = json.loads(json.dumps(config_data))  # deep copy via json

    for dotted_key, env_name in ENV_MAP.items():
        if env_name not in os.environ:
            continue
        raw = os.environ[env_name]
        target = merged
        parts = dotted_key.split(".")
        for part in parts[:-1]:
            target = target.setdefault(part, {})
        last = parts[-1]
        value: Any
        try:
            if last == "debug":
                value = raw.strip().lower() in _TRUE
            elif last in {"ops", "limit"}:
                value = int(raw)
            elif raw.strip().lower() in {"false", "none", "null", ""}:
                value = False
            else:
                value = float(raw)
        except ValueError as exc:
            raise ConfigError(f"invalid value for {env_name}: {raw!r}") from exc
        target[last] = value

    return merged


def load_config(
    config_path: Union[str, Path] = "config/model_cache.yml",
    delegate: Optional[Delegate] = None,
) -> Tuple[Dict[str, CacheConfig], CacheOptions]:
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    data = load_yaml(path)
    data = merge_env_overrides(data)
    validate_config(data)
    configs = build_configs(data.get("models"), data.get("defaults"))
    return configs, CacheOptions.from_dict(data.get("options"), delegate)
