"""CLI settings loading and validation.

Settings come from an optional ``settings.toml`` inside the config directory,
then environment variables override individual values::

    [logging]
    level = "INFO"
    format = "json"
    file = "${HOME}/.cache/caldav-cli/cli.log"

    [oauth]
    timeout_seconds = 120

    [http]
    timeout_seconds = 15

    [keyring]
    service = "caldav-cli"

String values may reference environment variables as ``${VAR_NAME}``.
"""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from caldav_cli.errors import ConfigError

DEFAULT_CONFIG_DIR = Path.home() / ".config" / "caldav-cli"
DEFAULT_KEYRING_SERVICE = "caldav-cli"
DEFAULT_OAUTH_TIMEOUT_SECONDS = 120.0
DEFAULT_HTTP_TIMEOUT_SECONDS = 15.0

SETTINGS_FILENAME = "settings.toml"

ENV_CONFIG_DIR = "CALDAV_CLI_CONFIG_DIR"
ENV_LOG_LEVEL = "CALDAV_CLI_LOG_LEVEL"
ENV_LOG_FORMAT = "CALDAV_CLI_LOG_FORMAT"
ENV_LOG_FILE = "CALDAV_CLI_LOG_FILE"
ENV_OAUTH_TIMEOUT = "CALDAV_CLI_OAUTH_TIMEOUT"
ENV_HTTP_TIMEOUT = "CALDAV_CLI_HTTP_TIMEOUT"
ENV_KEYRING_SERVICE = "CALDAV_CLI_KEYRING_SERVICE"

_VALID_LOG_LEVELS = frozenset({"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"})
_VALID_LOG_FORMATS = frozenset({"text", "json"})

# Pattern matching ${VAR_NAME}; supports alphanumeric + underscore variable names.
_ENV_VAR_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)\}")


@dataclass
class LoggingSettings:
    """Logging configuration from the [logging] section."""

    level: str = "WARNING"
    format: str = "text"
    file: Path | None = None


@dataclass
class Settings:
    """Resolved CLI settings."""

    config_dir: Path = DEFAULT_CONFIG_DIR
    logging: LoggingSettings = field(default_factory=LoggingSettings)
    oauth_timeout_seconds: float = DEFAULT_OAUTH_TIMEOUT_SECONDS
    http_timeout_seconds: float = DEFAULT_HTTP_TIMEOUT_SECONDS
    keyring_service: str = DEFAULT_KEYRING_SERVICE

    @property
    def config_file(self) -> Path:
        """Path of the JSON account/server-URL file."""
        return self.config_dir / "config.json"


def _resolve_env_vars(value: str, env: Mapping[str, str]) -> str:
    """Substitute ``${VAR}`` references; unknown variables raise ConfigError."""

    def _replace(match: re.Match[str]) -> str:
        var = match.group(1)
        resolved = env.get(var)
        if resolved is None:
            raise ConfigError(f"Environment variable {var} referenced in settings is not set")
        return resolved

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _positive_float(raw: Any, source: str) -> float:
    if isinstance(raw, bool):
        raise ConfigError(f"{source} must be a positive number, got {raw!r}")
    try:
        value = float(raw)
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"{source} must be a positive number, got {raw!r}") from exc
    if value <= 0:
        raise ConfigError(f"{source} must be a positive number, got {raw!r}")
    return value


def _read_settings_file(path: Path) -> dict[str, Any]:
    if not path.is_file():
        return {}
    try:
        with path.open("rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid TOML in {path}: {exc}") from exc
    except OSError as exc:
        raise ConfigError(f"Cannot read {path}: {exc}") from exc


def _section(data: dict[str, Any], name: str) -> dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"[{name}] must be a table")
    return section


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """Build :class:`Settings` from ``settings.toml`` and the environment.

    Parameters
    ----------
    env:
        Environment mapping for overrides and ``${VAR}`` references; defaults
        to ``os.environ``.

    Raises
    ------
    ConfigError
        If the settings file is malformed or a value is out of range.
    """
    env = dict(os.environ) if env is None else env

    config_dir = Path(env.get(ENV_CONFIG_DIR) or DEFAULT_CONFIG_DIR).expanduser()
    data = _read_settings_file(config_dir / SETTINGS_FILENAME)

    logging_section = _section(data, "logging")
    oauth_section = _section(data, "oauth")
    http_section = _section(data, "http")
    keyring_section = _section(data, "keyring")

    level = str(env.get(ENV_LOG_LEVEL) or logging_section.get("level", "WARNING")).upper()
    if level not in _VALID_LOG_LEVELS:
        raise ConfigError(
            f"Invalid log level {level!r}; expected one of {', '.join(sorted(_VALID_LOG_LEVELS))}"
        )

    fmt = str(env.get(ENV_LOG_FORMAT) or logging_section.get("format", "text")).lower()
    if fmt not in _VALID_LOG_FORMATS:
        raise ConfigError(f"Invalid log format {fmt!r}; expected 'text' or 'json'")

    raw_file = env.get(ENV_LOG_FILE) or logging_section.get("file")
    log_file = Path(_resolve_env_vars(str(raw_file), env)).expanduser() if raw_file else None

    raw_oauth_timeout = env.get(ENV_OAUTH_TIMEOUT) or oauth_section.get(
        "timeout_seconds", DEFAULT_OAUTH_TIMEOUT_SECONDS
    )
    raw_http_timeout = env.get(ENV_HTTP_TIMEOUT) or http_section.get(
        "timeout_seconds", DEFAULT_HTTP_TIMEOUT_SECONDS
    )

    service = env.get(ENV_KEYRING_SERVICE) or keyring_section.get(
        "service", DEFAULT_KEYRING_SERVICE
    )
    service = _resolve_env_vars(str(service), env).strip()
    if not service:
        raise ConfigError("Keyring service name must be non-empty")

    return Settings(
        config_dir=config_dir,
        logging=LoggingSettings(level=level, format=fmt, file=log_file),
        oauth_timeout_seconds=_positive_float(raw_oauth_timeout, "OAuth timeout"),
        http_timeout_seconds=_positive_float(raw_http_timeout, "HTTP timeout"),
        keyring_service=service,
    )
