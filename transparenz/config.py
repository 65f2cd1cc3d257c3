"""Application configuration loaded from defaults, a .env file and the environment."""

from __future__ import annotations

import json
import os
import re
from dataclasses import dataclass, field
from datetime import timedelta
from decimal import Decimal, InvalidOperation
from pathlib import Path
from typing import Any, Callable, Mapping

from dotenv import dotenv_values


class ConfigError(Exception):
    """Raised when configuration cannot be read, converted or validated."""


DEFAULT_CORS_ORIGINS = ("http://localhost:8080",)


@dataclass
class Config:
    """All configuration values for the server."""

    database_url: str = ""
    base_url: str = ""
    jwt_secret: str = ""
    encryption_key: str = ""
    port: str = "8080"
    log_level: str = "info"
    max_sbom_size: int = 10 * 1024 * 1024
    multi_tenant_mode: str = "shared"
    instance_dsns: dict[str, str] = field(default_factory=dict)
    vulnz_workspace_path: str = "/var/lib/vulnz/workspace"
    vulnz_sync_interval: timedelta = timedelta(hours=6)
    enisa_timeout: timedelta = timedelta(seconds=30)
    alert_tick_interval: timedelta = timedelta(seconds=30)
    sla_tick_interval: timedelta = timedelta(minutes=1)
    approaching_sla_threshold: timedelta = timedelta(hours=6)
    enisa_retry_interval: timedelta = timedelta(minutes=15)
    enisa_max_retries: int = 5
    job_queue_poll_interval: timedelta = timedelta(seconds=5)
    cors_allowed_origins: list[str] = field(default_factory=lambda: list(DEFAULT_CORS_ORIGINS))
    metrics_user: str = ""
    metrics_password: str = ""
    greenbone_enabled: bool = False
    sbom_webhook_enabled: bool = False
    telemetry_enabled: bool = True
    vulnz_disabled: bool = False
    rate_limit_disabled: bool = False
    enrichment_db_path: str = "/var/lib/enrichment/enrichment.db"
    enrichment_auto_init: bool = True


_UNIT_NS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}
_UNIT_ALT = "ns|us|µs|μs|ms|s|m|h"
_NUMBER = r"(?:\d+\.?\d*|\.\d+)"
_DURATION_RE = re.compile(rf"[-+]?(?:{_NUMBER}(?:{_UNIT_ALT}))+")
_PART_RE = re.compile(rf"({_NUMBER})({_UNIT_ALT})")


def parse_duration(text: str) -> timedelta:
    """Parse a duration such as "6h", "1h30m" or "500ms" into a timedelta."""
    if text in ("0", "+0", "-0"):
        return timedelta(0)
    if not _DURATION_RE.fullmatch(text):
        raise ConfigError(f"invalid duration {text!r}")
    negative = text.startswith("-")
    total = Decimal(0)
    for number, unit in _PART_RE.findall(text):
        try:
            total += Decimal(number) * _UNIT_NS[unit]
        except InvalidOperation as exc:
            raise ConfigError(f"invalid duration {text!r}") from exc
    seconds, rest_ns = divmod(int(total), 1_000_000_000)
    value = timedelta(seconds=seconds, microseconds=rest_ns // 1000)
    return -value if negative else value


def _to_str(key: str, value: Any) -> str:
    return str(value)


def _to_int(key: str, value: Any) -> int:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    try:
        return int(str(value).strip())
    except ValueError as exc:
        raise ConfigError(f"failed to unmarshal config: {key}: invalid integer {value!r}") from exc


_TRUE = {"1", "t", "T", "TRUE", "true", "True"}
_FALSE = {"0", "f", "F", "FALSE", "false", "False"}


def _to_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    text = str(value).strip()
    if text in _TRUE:
        return True
    if text in _FALSE:
        return False
    raise ConfigError(f"failed to unmarshal config: {key}: invalid boolean {value!r}")


def _to_duration(key: str, value: Any) -> timedelta:
    if isinstance(value, timedelta):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return timedelta(microseconds=value // 1000)
    text = str(value).strip()
    # A bare number carries no unit and counts as nanoseconds.
    if not any(ch in text for ch in "nsuµmh"):
        text += "ns"
    try:
        return parse_duration(text)
    except ConfigError as exc:
        raise ConfigError(f"failed to unmarshal config: {key}: {exc}") from exc


_Converter = Callable[[str, Any], Any]

# Each key maps to the Config attribute of the same name in lower case.
_SCALAR_FIELDS: dict[str, _Converter] = {
    "DATABASE_URL": _to_str,
    "BASE_URL": _to_str,
    "JWT_SECRET": _to_str,
    "ENCRYPTION_KEY": _to_str,
    "PORT": _to_str,
    "LOG_LEVEL": _to_str,
    "MAX_SBOM_SIZE": _to_int,
    "MULTI_TENANT_MODE": _to_str,
    "VULNZ_WORKSPACE_PATH": _to_str,
    "VULNZ_SYNC_INTERVAL": _to_duration,
    "ENISA_TIMEOUT": _to_duration,
    "ALERT_TICK_INTERVAL": _to_duration,
    "SLA_TICK_INTERVAL": _to_duration,
    "APPROACHING_SLA_THRESHOLD": _to_duration,
    "ENISA_RETRY_INTERVAL": _to_duration,
    "ENISA_MAX_RETRIES": _to_int,
    "JOB_QUEUE_POLL_INTERVAL": _to_duration,
    "METRICS_USER": _to_str,
    "METRICS_PASSWORD": _to_str,
    "GREENBONE_ENABLED": _to_bool,
    "SBOM_WEBHOOK_ENABLED": _to_bool,
    "TELEMETRY_ENABLED": _to_bool,
    "VULNZ_DISABLED": _to_bool,
    "RATE_LIMIT_DISABLED": _to_bool,
    "ENRICHMENT_DB_PATH": _to_str,
    "ENRICHMENT_AUTO_INIT": _to_bool,
}

_KNOWN_KEYS = (*_SCALAR_FIELDS, "CORS_ALLOWED_ORIGINS", "INSTANCE_DSNS")


def _defaults() -> dict[str, Any]:
    base = Config()
    return {key: getattr(base, key.lower()) for key in _SCALAR_FIELDS}


def _read_env_file(env_file: str | os.PathLike[str] | None) -> dict[str, str]:
    if env_file is None:
        return {}
    path = Path(env_file)
    if not path.is_file():
        return {}
    try:
        values = dotenv_values(path)
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"error reading config file: {exc}") from exc
    return {key.upper(): value for key, value in values.items() if value is not None}


def load_config(
    environ: Mapping[str, str] | None = None,
    env_file: str | os.PathLike[str] | None = ".env",
) -> Config:
    """Build a validated Config from defaults, then the .env file, then the environment."""
    env = os.environ if environ is None else environ
    raw: dict[str, Any] = _defaults()
    raw.update(_read_env_file(env_file))
    for key in _KNOWN_KEYS:
        value = env.get(key)
        if value:
            raw[key] = value

    values = {
        key.lower(): convert(key, raw[key]) for key, convert in _SCALAR_FIELDS.items() if key in raw
    }

    cors_raw = str(raw.get("CORS_ALLOWED_ORIGINS", "") or "")
    values["cors_allowed_origins"] = cors_raw.split(",") if cors_raw else list(DEFAULT_CORS_ORIGINS)
    values["instance_dsns"] = parse_instance_dsns(str(raw.get("INSTANCE_DSNS", "") or ""))

    config = Config(**values)
    validate_config(config)
    return config


def validate_config(config: Config) -> None:
    """Raise ConfigError if a required value is missing or malformed."""
    if not config.database_url:
        raise ConfigError("DATABASE_URL is required but not set")
    if not config.jwt_secret:
        raise ConfigError("JWT_SECRET is required but not set")
    if len(config.jwt_secret) < 32:
        raise ConfigError(
            f"JWT_SECRET must be at least 32 characters long (current length: {len(config.jwt_secret)})"
        )
    if not config.encryption_key:
        raise ConfigError("ENCRYPTION_KEY is required but not set")
    if len(config.encryption_key) != 32:
        raise ConfigError(
            f"ENCRYPTION_KEY must be exactly 32 characters long (current length: {len(config.encryption_key)})"
        )


def parse_instance_dsns(raw: str) -> dict[str, str]:
    """Decode the INSTANCE_DSNS JSON object mapping org IDs to connection strings."""
    if not raw:
        return {}
    try:
        decoded = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ConfigError(f"parse INSTANCE_DSNS: {exc}") from exc
    if not isinstance(decoded, dict) or not all(isinstance(v, str) for v in decoded.values()):
        raise ConfigError("parse INSTANCE_DSNS: expected a JSON object of strings")
    return decoded


def with_search_path(database_url: str) -> str:
    """Append search_path=compliance to a connection string that has none."""
    if "search_path" in database_url:
        return database_url
    separator = "&" if "?" in database_url else "?"
    return f"{database_url}{separator}search_path=compliance"