"""Runtime settings.

Precedence, lowest to highest: defaults, a YAML/JSON config file,
``DEPINJECT_<FIELD>`` environment variables, explicit overrides.
"""
from __future__ import annotations

import dataclasses
import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import ChecksumAlgorithms, Constants
from .models import ExecutionMode

logger = logging.getLogger(__name__)

UNVERIFIED_POLICIES = ("accept", "reject")


def _default_root() -> Path:
    return Path.home() / Constants.DEFAULT_STORAGE_DIR


@dataclass(frozen=True)
class Settings:
    """Global pipeline settings."""

    storage_root: Path = field(default_factory=_default_root)
    mode: ExecutionMode = ExecutionMode.APPENDING
    application_name: str = Constants.DEFAULT_APPLICATION_NAME
    checksum_algorithm: str = Constants.DEFAULT_CHECKSUM_ALGORITHM
    probe_timeout: float = Constants.PROBE_TIMEOUT
    fetch_timeout: float = Constants.FETCH_TIMEOUT
    max_workers: int = Constants.MAX_WORKERS
    unverified_policy: str = "accept"
    follow_poms: bool = True
    user_agent: str = Constants.USER_AGENT

    def __post_init__(self) -> None:
        object.__setattr__(self, "storage_root", Path(self.storage_root).expanduser())
        if not isinstance(self.mode, ExecutionMode):
            object.__setattr__(self, "mode", _coerce_mode(self.mode))
        try:
            ChecksumAlgorithms(self.checksum_algorithm)
        except ValueError as exc:
            raise ValueError(f"checksum_algorithm: unsupported '{self.checksum_algorithm}'") from exc
        if self.unverified_policy not in UNVERIFIED_POLICIES:
            raise ValueError(
                f"unverified_policy: expected one of {UNVERIFIED_POLICIES}, got '{self.unverified_policy}'"
            )
        if int(self.max_workers) < 1:
            raise ValueError("max_workers: must be at least 1")
        if float(self.probe_timeout) <= 0 or float(self.fetch_timeout) <= 0:
            raise ValueError("probe_timeout/fetch_timeout: must be positive")

    def replace(self, **changes: Any) -> "Settings":
        return dataclasses.replace(self, **changes)


def _coerce_mode(value: Any) -> ExecutionMode:
    try:
        return ExecutionMode(str(value).strip().lower())
    except ValueError as exc:
        raise ValueError(f"mode: expected 'isolated' or 'appending', got '{value}'") from exc


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ("1", "true", "yes", "on")


_COERCE = {
    "storage_root": Path,
    "mode": _coerce_mode,
    "application_name": str,
    "checksum_algorithm": lambda v: str(v).lower().replace("-", ""),
    "probe_timeout": float,
    "fetch_timeout": float,
    "max_workers": int,
    "unverified_policy": lambda v: str(v).strip().lower(),
    "follow_poms": _coerce_bool,
    "user_agent": str,
}


def _coerce(values: Mapping[str, Any]) -> Dict[str, Any]:
    coerced: Dict[str, Any] = {}
    for key, value in values.items():
        if value is None:
            continue
        if key not in _COERCE:
            logger.warning("Ignoring unknown setting '%s'", key)
            continue
        try:
            coerced[key] = _COERCE[key](value)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"{key}: invalid value {value!r}") from exc
    return coerced


def load_config_file(path: Path) -> Dict[str, Any]:
    """Read settings from a YAML or JSON file.

    Args:
        path: Config file. Settings may sit at top level or under ``depinject:``.

    Returns:
        Raw settings mapping.

    Raises:
        ValueError: If the file cannot be parsed or is not a mapping.
    """
    text = Path(path).read_text(encoding="utf-8")
    try:
        if str(path).endswith(".json"):
            data = json.loads(text)
        else:
            data = yaml.safe_load(text)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ValueError(f"Failed to parse config {path}: {exc}") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Config {path} must contain a mapping")
    section = data.get("depinject", data)
    return section if isinstance(section, dict) else {}


def _from_env(environ: Mapping[str, str]) -> Dict[str, Any]:
    values = {}
    for name in _COERCE:
        env_name = f"{Constants.ENV_PREFIX}{name.upper()}"
        if env_name in environ:
            values[name] = environ[env_name]
    return values


def load_settings(
    config_path: Optional[Path] = None,
    overrides: Optional[Mapping[str, Any]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> Settings:
    """Build Settings from every configuration source.

    Args:
        config_path: Optional YAML/JSON file.
        overrides: Highest-precedence values (e.g. CLI flags); None values ignored.
        environ: Environment mapping, defaults to ``os.environ``.

    Returns:
        Validated Settings.
    """
    values: Dict[str, Any] = {}
    if config_path:
        values.update(_coerce(load_config_file(config_path)))
        logger.info("Loaded settings from %s", config_path)
    values.update(_coerce(_from_env(os.environ if environ is None else environ)))
    values.update(_coerce(overrides or {}))
    return Settings(**values)
