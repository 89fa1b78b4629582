"""Configuration loading and validation for hclogging."""

import copy
import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, Iterable, Optional

import yaml

from hclogging.client import DEFAULT_TIMEOUT, base_url, build_check_url
from hclogging.errors import ConfigError
from hclogging.loop import check_interval

_ENV_VAR_RE = re.compile(r"\$\{([^}]+)\}")

_INTERVAL_RE = re.compile(r"^(\d+(?:\.\d+)?)([smh]?)$")

_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600}


DEFAULT_CONFIG: Dict[str, Any] = {
    "check_id": "",
    "interval": "1m",
    "timeout": DEFAULT_TIMEOUT,
    "fail_levels": ["ERROR", "CRITICAL"],
}


def config_dir() -> Path:
    """Directory holding the config and log files.

    ``$HCLOGGING_HOME`` wins; otherwise the per-user config directory
    (``%APPDATA%`` on Windows, ``$XDG_CONFIG_HOME`` or ``~/.config``).
    """
    override = os.environ.get("HCLOGGING_HOME")
    if override:
        return Path(override)
    if os.name == "nt":
        root = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
    else:
        root = os.environ.get("XDG_CONFIG_HOME") or Path.home() / ".config"
    return Path(root) / "hclogging"


def default_config_path() -> Path:
    return config_dir() / "config.yaml"


def parse_interval(value) -> float:
    """Convert an interval like ``30``, ``"30s"``, ``"5m"`` or ``"1h"`` to seconds."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid interval {value!r}. Use seconds or 30s, 5m, 1h.")
    if isinstance(value, (int, float)):
        return check_interval(value)
    match = _INTERVAL_RE.match(str(value).strip())
    if not match:
        raise ValueError(f"Invalid interval {value!r}. Use seconds or 30s, 5m, 1h.")
    return check_interval(float(match.group(1)) * _UNIT_SECONDS[match.group(2)])


def resolve_level(value) -> int:
    """Return the numeric logging level for a name (``"error"``) or number."""
    if isinstance(value, bool):
        raise ValueError(f"Unknown log level {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ValueError(f"Log level must be non-negative, got {value}")
        return value
    if isinstance(value, str):
        name = value.strip().upper()
        if name.isdigit():
            return int(name)
        levels = logging.getLevelNamesMapping()
        if name in levels:
            return levels[name]
    raise ValueError(f"Unknown log level {value!r}")


def _expand_env_vars(obj):
    """Recursively expand ${VAR} references in string values."""
    if isinstance(obj, str):
        return _ENV_VAR_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def load_config(path: Optional[Path] = None) -> Dict[str, Any]:
    """Load config from YAML file, merged with defaults.

    String values containing ``${VAR}`` are expanded from environment
    variables.  Unset variables are left as-is.
    """
    path = path or default_config_path()
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        with open(path, "r") as f:
            user_config = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigError(f"cannot parse {path}: {e}") from e
    if not isinstance(user_config, dict):
        raise ConfigError(f"{path} must contain a mapping at the top level")
    # Flat schema: a key in the file replaces the default outright.
    return _expand_env_vars({**copy.deepcopy(DEFAULT_CONFIG), **user_config})


def validate_config(config: Dict[str, Any]) -> list:
    """Validate config and return a list of error strings (empty = valid)."""
    errors = []

    check_id = config.get("check_id")
    if not isinstance(check_id, str) or not check_id.strip():
        errors.append("check_id is required")
    elif _ENV_VAR_RE.search(check_id):
        errors.append(f"check_id references an unset environment variable: {check_id}")

    url = config.get("base_url")
    if url is not None:
        try:
            build_check_url(url, "check")
        except ConfigError:
            errors.append(f"base_url must be an http(s) URL, got '{url}'")

    try:
        parse_interval(config.get("interval"))
    except ValueError as e:
        errors.append(f"interval: {e}")

    timeout = config.get("timeout", DEFAULT_TIMEOUT)
    if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
        errors.append(f"timeout must be a positive number of seconds, got {timeout!r}")

    fail_levels = config.get("fail_levels", [])
    if not isinstance(fail_levels, list):
        errors.append("fail_levels must be a list")
    else:
        for i, level in enumerate(fail_levels):
            try:
                resolve_level(level)
            except ValueError as e:
                errors.append(f"fail_levels[{i}]: {e}")

    return errors


@dataclass(frozen=True)
class HookConfig:
    """Settings for one hook.  ``base_url`` defaults to the process-wide value
    at the time the config is created."""

    check_id: str
    interval: float
    fail_levels: FrozenSet[int] = frozenset()
    timeout: float = DEFAULT_TIMEOUT
    base_url: str = field(default_factory=base_url)

    def __post_init__(self):
        build_check_url(self.base_url, self.check_id)
        try:
            object.__setattr__(self, "interval", check_interval(self.interval))
            object.__setattr__(self, "fail_levels", _level_set(self.fail_levels))
        except ValueError as e:
            raise ConfigError(str(e)) from e
        timeout = self.timeout
        if isinstance(timeout, bool) or not isinstance(timeout, (int, float)) or timeout <= 0:
            raise ConfigError(f"timeout must be a positive number of seconds, got {timeout!r}")

    @property
    def check_url(self) -> str:
        return build_check_url(self.base_url, self.check_id)

    @classmethod
    def from_dict(cls, config: Dict[str, Any]) -> "HookConfig":
        """Build from a loaded config dict.  Raises :class:`ConfigError`."""
        errors = validate_config(config)
        if errors:
            raise ConfigError("; ".join(errors))
        return cls(
            check_id=config["check_id"].strip(),
            interval=parse_interval(config["interval"]),
            fail_levels=frozenset(config.get("fail_levels", [])),
            timeout=config.get("timeout", DEFAULT_TIMEOUT),
            base_url=config.get("base_url") or base_url(),
        )


def _level_set(levels: Iterable) -> FrozenSet[int]:
    return frozenset(resolve_level(level) for level in levels)
