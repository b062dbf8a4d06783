"""Command-line entry point: ``data-steward``."""

import click
import uvicorn

from data_steward.app import create_app
from data_steward.config import DataStewardSettings
from data_steward.utilities.logging import configure_logging, get_logger

logger = get_logger(__name__)


@click.command()
@click.option("--host", default=None, help="Host to bind to (default: DATA_STEWARD_HOST or 127.0.0.1)")
@click.option("--port", type=int, default=None, help="Port to listen on for HTTP (default: DATA_STEWARD_PORT or 3000)")
@click.option("--path", default=None, help="Endpoint path (default: /mcp)")
@click.option(
    "--log-level",
    type=click.Choice(["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"], case_sensitive=False),
    default=None,
    help="Logging level (default: DATA_STEWARD_LOG_LEVEL or INFO)",
)
def main(host: str | None, port: int | None, path: str | None, log_level: str | None) -> int:
    overrides = {"host": host, "port": port, "path": path, "log_level": log_level.upper() if log_level else None}
    settings = DataStewardSettings(**{key: value for key, value in overrides.items() if value is not None})

    configure_logging(settings.log_level)
    app = create_app(settings)

    logger.info("Data Steward listening on http://%s:%d%s", settings.host, settings.port, settings.path)
    uvicorn.run(app, host=settings.host, port=settings.port, log_level=settings.log_level.lower())

    return 0
