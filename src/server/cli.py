"""Click CLI for running and checking the relay."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from types import TracebackType

import click
import uvicorn

from src.audit.logger import validate_audit_chain
from src.config import ConfigError, RelayConfig
from src.persona import load_persona
from src.server.app import create_app

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str) -> None:
    logging.basicConfig(level=level.upper(), format=_LOG_FORMAT, force=True)


def _fatal_excepthook(
    exc_type: type[BaseException],
    exc: BaseException,
    tb: TracebackType | None,
) -> None:
    logger.critical("Uncaught exception, terminating", exc_info=(exc_type, exc, tb))
    sys.exit(1)


def _load_config() -> RelayConfig:
    try:
        config = RelayConfig.from_env()
        load_persona(config.persona_path)
    except ConfigError as exc:
        logger.error("Configuration error: %s", exc)
        raise SystemExit(1) from exc
    return config


@click.group()
def cli() -> None:
    """WhatsApp to Gemini webhook relay."""


@cli.command()
@click.option("--host", default="0.0.0.0", help="Interface to bind.")
@click.option("--port", type=int, default=None, help="Port to bind (default: $PORT or 10000).")
def serve(host: str, port: int | None) -> None:
    """Validate configuration and start the webhook server."""
    configure_logging("INFO")
    config = _load_config()
    configure_logging(config.log_level)
    sys.excepthook = _fatal_excepthook
    logger.info("Configuration validated: %s", config.summary())
    uvicorn.run(
        create_app(config),
        host=host,
        port=port or config.port,
        log_config=None,
    )


@cli.command("check-config")
def check_config() -> None:
    """Validate the environment configuration and print a safe summary."""
    configure_logging("INFO")
    config = _load_config()
    click.echo(json.dumps(config.summary(), indent=2))


@cli.command("verify-audit")
@click.argument("log_path", type=click.Path(exists=True, dir_okay=False, path_type=Path))
def verify_audit(log_path: Path) -> None:
    """Check the hash chain of an audit log file."""
    result = validate_audit_chain(log_path)
    if not result.valid:
        click.echo(f"Audit chain broken at line {result.broken_at_line}", err=True)
        raise SystemExit(1)
    click.echo("Audit chain intact")


if __name__ == "__main__":
    cli()
