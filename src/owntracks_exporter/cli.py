"""Click CLI for the OwnTracks exporter.

Entry point registered in ``pyproject.toml`` as ``owntracks-exporter``::

    owntracks-exporter                          # serve with /etc/owntracks-exporter/config.json
    owntracks-exporter -c config.json --port 9000
    owntracks-exporter --validate-config        # check the config and exit
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

import click
import orjson
from aiohttp import web

from owntracks_exporter import __version__
from owntracks_exporter.cards import load_cards
from owntracks_exporter.config import LogFileConfig, load_config
from owntracks_exporter.pipeline import TrackingContext
from owntracks_exporter.server import create_app

logger = logging.getLogger("owntracks_exporter")

DEFAULT_CONFIG = "/etc/owntracks-exporter/config.json"

# ``${VAR}`` names the --host/--port/--cards-dir flags resolve in the config file.
HOST_VAR = "OWNTRACKS_EXPORTER_HOST"
PORT_VAR = "OWNTRACKS_EXPORTER_PORT"
CARDS_DIR_VAR = "OWNTRACKS_CARDS_DIR"


# ── structured JSON log formatter ───────────────────────────────────


class _JsonFormatter(logging.Formatter):
    """Emit log records as single-line JSON to stderr."""

    def format(self, record: logging.LogRecord) -> str:
        obj = {
            "ts": self.formatTime(record, self.datefmt),
            "level": record.levelname.lower(),
            "logger": record.name,
            "event": record.getMessage(),
        }
        if record.exc_info and record.exc_info[0] is not None:
            obj["exception"] = self.formatException(record.exc_info)
        return orjson.dumps(obj).decode()


def _setup_logging(level: str, log_file_config: Optional[LogFileConfig] = None) -> None:
    """Configure the root logger with JSON output on stderr + optional file."""
    root = logging.getLogger()
    root.setLevel(getattr(logging, level.upper(), logging.INFO))

    # Always log to stderr (journald picks this up)
    stderr_handler = logging.StreamHandler(sys.stderr)
    stderr_handler.setFormatter(_JsonFormatter())
    root.addHandler(stderr_handler)

    # Optionally log to a rotating file
    if log_file_config and log_file_config.enabled:
        from logging.handlers import RotatingFileHandler

        log_dir = Path(log_file_config.path).parent
        log_dir.mkdir(parents=True, exist_ok=True)

        file_handler = RotatingFileHandler(
            filename=log_file_config.path,
            maxBytes=log_file_config.max_size_bytes,
            backupCount=log_file_config.backup_count,
        )
        file_handler.setFormatter(_JsonFormatter())
        root.addHandler(file_handler)


def _resolve_config_path(config_path: Optional[str]) -> Optional[str]:
    """Explicit path → env var → default file if it exists → ``None`` (defaults)."""
    if config_path:
        return config_path
    env_path = os.environ.get("OWNTRACKS_EXPORTER_CONFIG")
    if env_path:
        return env_path
    if Path(DEFAULT_CONFIG).exists():
        return DEFAULT_CONFIG
    return None


# ── main command ────────────────────────────────────────────────────


@click.command()
@click.option("-c", "--config", "config_path", default=None,
              help="Config file path.")
@click.option("--host", default=None, help="Override listen address.")
@click.option("--port", default=None, type=int, help="Override listen port.")
@click.option("--cards-dir", default=None, help="Override card image directory.")
@click.option("--log-level", default=None,
              type=click.Choice(["debug", "info", "warn", "error"]),
              help="Log verbosity.")
@click.option("--validate-config", "validate_only", is_flag=True,
              help="Validate config and exit.")
@click.version_option(__version__)
def main(
    config_path: Optional[str],
    host: Optional[str],
    port: Optional[int],
    cards_dir: Optional[str],
    log_level: Optional[str],
    validate_only: bool,
) -> None:
    """OwnTracks exporter: location pings in, interpolated Prometheus metrics out."""
    cfg_path = _resolve_config_path(config_path)

    # --- build overrides ---
    overrides: dict[str, str] = {}
    if host:
        overrides[HOST_VAR] = host
    if port:
        overrides[PORT_VAR] = str(port)
    if cards_dir:
        overrides[CARDS_DIR_VAR] = cards_dir

    # --- load + validate config ---
    try:
        cfg = load_config(cfg_path, overrides=overrides)
    except Exception as exc:
        click.echo(f"Config error: {exc}", err=True)
        raise SystemExit(1) from exc

    # --- resolve runtime overrides ---
    effective_level = (
        log_level
        or os.environ.get("OWNTRACKS_EXPORTER_LOG_LEVEL")
        or cfg.logging.level
    )
    # flags also win over literal (non-placeholder) values in the file
    if host:
        cfg.server.host = host
    if port:
        cfg.server.port = port
    if cards_dir:
        cfg.cards.directory = cards_dir

    _setup_logging(effective_level, cfg.logging.file)

    if validate_only:
        click.echo("Configuration is valid.", err=True)
        raise SystemExit(0)

    logger.info(
        "Starting owntracks-exporter %s (listen=%s:%d, config=%s)",
        __version__,
        cfg.server.host,
        cfg.server.port,
        cfg_path or "defaults",
    )

    context = TrackingContext.from_config(cfg, cards=load_cards(cfg.cards.directory))
    app = create_app(cfg, context)

    web.run_app(
        app,
        host=cfg.server.host,
        port=cfg.server.port,
        print=None,
        access_log=None,
    )
    logger.info("Server shut down (%d devices tracked)", len(context.devices))
