"""Configuration loading, environment-variable interpolation, and validation.

Resolution order for ``${VAR}`` placeholders:
    CLI overrides → environment variables → raw config value.

``${VAR}`` (no default) raises if unresolvable.
``${VAR:-default}`` falls back to *default*.
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional

import orjson
import jsonschema

logger = logging.getLogger(__name__)

_VAR_RE = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-(.*?))?\}")

_SCHEMA_PATH = Path(__file__).resolve().parent.parent.parent / "config" / "config.schema.json"


@dataclass
class ServerConfig:
    """HTTP listener settings."""

    host: str = "0.0.0.0"
    port: int = 8083
    publish_path: str = "/pub"


@dataclass
class MetricsConfig:
    """Exposition endpoint settings."""

    prefix: str = "owntracks"
    path: str = "/metrics"


@dataclass
class InterpolationConfig:
    """Interpolation granularity."""

    interval_ms: int = 60000


@dataclass
class CardsConfig:
    """Friend card source and re-send window."""

    directory: Optional[str] = None
    resend_interval_seconds: int = 86400


@dataclass
class FilterConfig:
    """Sample filtering rules."""

    drop_device_ids: list[str] = field(default_factory=list)
    keep_device_ids: list[str] = field(default_factory=list)
    max_accuracy_m: Optional[float] = None


@dataclass
class LogFileConfig:
    """Optional log file output settings.

    When ``enabled`` is True the application writes operational logs to a
    rotating file in addition to stderr.
    """

    enabled: bool = False
    path: str = "/var/log/owntracks-exporter/app.log"
    max_size_bytes: int = 10485760   # 10 MB
    backup_count: int = 5


@dataclass
class LoggingConfig:
    """Logging settings."""

    level: str = "info"
    file: LogFileConfig = field(default_factory=LogFileConfig)


@dataclass
class AppConfig:
    """Top-level application configuration."""

    server: ServerConfig = field(default_factory=ServerConfig)
    metrics: MetricsConfig = field(default_factory=MetricsConfig)
    interpolation: InterpolationConfig = field(default_factory=InterpolationConfig)
    cards: CardsConfig = field(default_factory=CardsConfig)
    filter: FilterConfig = field(default_factory=FilterConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _interpolate_value(value: str, overrides: dict[str, str] | None = None) -> str:
    """Replace ``${VAR}`` / ``${VAR:-default}`` in *value*."""

    def _replacer(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no ``:-`` present

        # 1. CLI overrides
        if overrides and var_name in overrides:
            return overrides[var_name]
        # 2. Environment variables
        env_val = os.environ.get(var_name)
        if env_val is not None:
            return env_val
        # 3. Default
        if default is not None:
            return default

        raise ValueError(
            f"Required variable ${{{var_name}}} is not set in environment or CLI overrides"
        )

    return _VAR_RE.sub(_replacer, value)


def _walk_and_interpolate(obj: Any, overrides: dict[str, str] | None = None) -> Any:
    """Recursively interpolate all string values in a JSON-like structure."""
    if isinstance(obj, str):
        return _interpolate_value(obj, overrides)
    if isinstance(obj, dict):
        return {k: _walk_and_interpolate(v, overrides) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_walk_and_interpolate(item, overrides) for item in obj]
    return obj


def _pick(cls: type, raw: dict[str, Any]) -> dict[str, Any]:
    """Keep only the keys of *raw* that are fields of dataclass *cls*."""
    return {k: raw[k] for k in raw if k in cls.__dataclass_fields__}


def _dict_to_config(raw: dict[str, Any]) -> AppConfig:
    """Convert a raw dict into a typed :class:`AppConfig`."""
    server_raw = raw.get("server", {})
    metrics_raw = raw.get("metrics", {})
    interpolation_raw = raw.get("interpolation", {})
    cards_raw = raw.get("cards", {})
    filter_raw = raw.get("filter", {})
    logging_raw = raw.get("logging", {})
    log_file_raw = logging_raw.get("file", {})

    server = ServerConfig(**_pick(ServerConfig, server_raw))
    # ports arrive as strings when taken from ``${VAR}`` placeholders
    server.port = int(server.port)

    return AppConfig(
        server=server,
        metrics=MetricsConfig(**_pick(MetricsConfig, metrics_raw)),
        interpolation=InterpolationConfig(
            interval_ms=int(interpolation_raw.get("interval_ms", 60000)),
        ),
        cards=CardsConfig(
            directory=cards_raw.get("directory") or None,
            resend_interval_seconds=int(cards_raw.get("resend_interval_seconds", 86400)),
        ),
        filter=FilterConfig(
            drop_device_ids=filter_raw.get("drop_device_ids", []),
            keep_device_ids=filter_raw.get("keep_device_ids", []),
            max_accuracy_m=filter_raw.get("max_accuracy_m"),
        ),
        logging=LoggingConfig(
            level=logging_raw.get("level", "info"),
            file=LogFileConfig(**_pick(LogFileConfig, log_file_raw)),
        ),
    )


def load_config(
    path: str | Path | None,
    overrides: dict[str, str] | None = None,
    schema_path: str | Path | None = None,
) -> AppConfig:
    """Load, interpolate, validate, and return the application config.

    Parameters
    ----------
    path:
        Filesystem path to ``config.json``.  ``None`` yields the defaults.
    overrides:
        CLI-supplied variable overrides.
    schema_path:
        Path to the JSON Schema file.  Defaults to
        ``config/config.schema.json`` relative to the project root.

    Returns
    -------
    AppConfig
        Fully resolved and validated configuration.

    Raises
    ------
    ValueError
        If a required ``${VAR}`` cannot be resolved.
    jsonschema.ValidationError
        If the config fails schema validation.
    """
    if path is None:
        logger.debug("No config file given, using defaults")
        return AppConfig()

    raw_bytes = Path(path).read_bytes()
    raw: dict[str, Any] = orjson.loads(raw_bytes)

    interpolated = _walk_and_interpolate(raw, overrides=overrides)

    # --- schema validation ---
    sp = Path(schema_path) if schema_path else _SCHEMA_PATH
    if sp.exists():
        schema = orjson.loads(sp.read_bytes())
        jsonschema.validate(instance=interpolated, schema=schema)
        logger.debug("Config passed schema validation")
    else:
        logger.warning("Schema file not found at %s, skipping validation", sp)

    return _dict_to_config(interpolated)
