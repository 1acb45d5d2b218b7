"""Client configuration: YAML file + environment overrides.

Lookup order (later wins):
  1. built-in defaults (dataclass fields below)
  2. the YAML file passed to :func:`load_config`
  3. ``IDSWATCH_*`` environment variables
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any

from idswatch.contracts.enums import Severity
from idswatch.errors import ConfigError
from idswatch.shared.config_loader import load_yaml

log = logging.getLogger(__name__)

HISTORY_MIN_POINTS = 60
HISTORY_MAX_POINTS = 3600

# env var -> (section, key)
_ENV_OVERRIDES: dict[str, tuple[str | None, str]] = {
    "IDSWATCH_WS_URL": ("channel", "url"),
    "IDSWATCH_API_URL": ("api", "base_url"),
    "IDSWATCH_STORAGE_DIR": ("storage", "directory"),
    "IDSWATCH_LOG_LEVEL": (None, "log_level"),
}


@dataclass
class ChannelConfig:
    url: str = "ws://localhost:3000/ws/alerts"
    reconnect_delay_sec: float = 3.0


@dataclass
class ApiConfig:
    base_url: str = "http://localhost:3000"
    poll_interval_sec: float = 1.0
    timeout_sec: float = 5.0


@dataclass
class BufferConfig:
    capacity: int = 100


@dataclass
class HistoryConfig:
    max_points: int = 60
    normalize_elapsed: bool = False


@dataclass
class NotificationConfig:
    auto_dismiss_sec: float = 10.0
    # Permission reported by the log backend used on the command line.
    cli_permission: str = "granted"


@dataclass
class StorageConfig:
    # Empty directory = in-memory storage, nothing survives the process.
    directory: str = "~/.config/idswatch"


@dataclass
class ClientConfig:
    channel: ChannelConfig = field(default_factory=ChannelConfig)
    api: ApiConfig = field(default_factory=ApiConfig)
    buffer: BufferConfig = field(default_factory=BufferConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    notifications: NotificationConfig = field(default_factory=NotificationConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log_level: str = "INFO"


def _section(datacls: type, data: Any, name: str) -> Any:
    if data is None:
        return datacls()
    if not isinstance(data, dict):
        raise ConfigError(f"section '{name}' must be a mapping")
    known = {f.name: f for f in fields(datacls)}
    kwargs: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known:
            log.warning("Unknown config key %s.%s — ignored", name, key)
            continue
        default = getattr(datacls(), key)
        try:
            if isinstance(default, bool):
                kwargs[key] = _as_bool(value)
            elif isinstance(default, (int, float)):
                kwargs[key] = type(default)(value)
            else:
                kwargs[key] = "" if value is None else str(value)
        except (TypeError, ValueError) as exc:
            raise ConfigError(f"invalid value for {name}.{key}: {value!r}") from exc
    return datacls(**kwargs)


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    lowered = str(value).strip().lower()
    if lowered in {"true", "yes", "1", "on"}:
        return True
    if lowered in {"false", "no", "0", "off"}:
        return False
    raise ValueError(value)


def build_config(data: dict[str, Any]) -> ClientConfig:
    """Build and validate :class:`ClientConfig` from a raw dict."""
    cfg = ClientConfig(
        channel=_section(ChannelConfig, data.get("channel"), "channel"),
        api=_section(ApiConfig, data.get("api"), "api"),
        buffer=_section(BufferConfig, data.get("buffer"), "buffer"),
        history=_section(HistoryConfig, data.get("history"), "history"),
        notifications=_section(NotificationConfig, data.get("notifications"), "notifications"),
        storage=_section(StorageConfig, data.get("storage"), "storage"),
        log_level=str(data.get("log_level", "INFO")).upper(),
    )
    validate_config(cfg)
    return cfg


def validate_config(cfg: ClientConfig) -> None:
    if not cfg.channel.url.startswith(("ws://", "wss://")):
        raise ConfigError(f"channel.url must be a ws:// or wss:// URL, got '{cfg.channel.url}'")
    if cfg.channel.reconnect_delay_sec <= 0:
        raise ConfigError("channel.reconnect_delay_sec must be positive")
    if cfg.api.poll_interval_sec <= 0:
        raise ConfigError("api.poll_interval_sec must be positive")
    if cfg.buffer.capacity < 1:
        raise ConfigError("buffer.capacity must be at least 1")
    if not HISTORY_MIN_POINTS <= cfg.history.max_points <= HISTORY_MAX_POINTS:
        raise ConfigError(
            f"history.max_points must be within {HISTORY_MIN_POINTS}..{HISTORY_MAX_POINTS}"
        )
    if cfg.notifications.cli_permission not in {"default", "granted", "denied"}:
        raise ConfigError("notifications.cli_permission must be default, granted or denied")
    if cfg.log_level not in {"DEBUG", "INFO", "WARNING", "ERROR"}:
        raise ConfigError(f"unknown log_level '{cfg.log_level}'")


def _env_overrides(environ: dict[str, str]) -> dict[str, Any]:
    overrides: dict[str, Any] = {}
    for var, (section, key) in _ENV_OVERRIDES.items():
        if var not in environ:
            continue
        if section is None:
            overrides[key] = environ[var]
        else:
            overrides.setdefault(section, {})[key] = environ[var]
    return overrides


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Deep merge override into base dict."""
    for key, value in override.items():
        if isinstance(base.get(key), dict) and isinstance(value, dict):
            base[key] = _merge(base[key], value)
        else:
            base[key] = value
    return base


def load_config(
    path: str | Path | None = None,
    environ: dict[str, str] | None = None,
) -> ClientConfig:
    """Load configuration from an optional YAML file and the environment."""
    data: dict[str, Any] = load_yaml(path) if path else {}
    data = _merge(data, _env_overrides(dict(os.environ) if environ is None else environ))
    cfg = build_config(data)
    log.debug("Client config: channel=%s api=%s", cfg.channel.url, cfg.api.base_url)
    return cfg


def min_severity_arg(value: str) -> Severity:
    """argparse ``type=`` helper."""
    try:
        return Severity.parse(value)
    except ValueError as exc:
        raise ConfigError(str(exc)) from exc
