"""
Typer entry point: ``doccache CONFIG_PATH``.

Startup order: configuration, logging, metrics endpoint, backend health,
schema synchronization and cursor, then delta replay. Any failure exits
with a non-zero status; restarting resumes from the persisted cursor.
"""

from __future__ import annotations

import sys
from pathlib import Path

import typer
from rich.console import Console

from doccache import __version__
from doccache.config import load_config
from doccache.core.errors import ConfigError, DoccacheError
from doccache.core.logging import configure_logging, get_logger
from doccache.core.settings import DoccacheSettings
from doccache.engine.doccache import Doccache
from doccache.engine.handler import DeltaHandler
from doccache.engine.stream import JsonLinesDeltaStream
from doccache.gql.admin import SchemaAdmin
from doccache.gql.transport import Executor, GraphQLTransport
from doccache.observability.metrics import Metrics

logger = get_logger(__name__)

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    name="doccache",
    help="doccache: project on-chain documents into a typed GraphQL store.",
    rich_markup_mode="rich",
)


# ── Version callback ─────────────────────────────────────────────────────


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(f"doccache {__version__}")
        raise typer.Exit()


# ── Wiring ───────────────────────────────────────────────────────────────


def build_transports(settings: DoccacheSettings) -> tuple[Executor, Executor]:
    """Admin and data endpoint transports."""
    return (
        GraphQLTransport(settings.gql_admin_url, timeout=settings.request_timeout),
        GraphQLTransport(settings.gql_client_url, timeout=settings.request_timeout),
    )


def open_stream(deltas: str, resume_cursor: str, start_block: int) -> JsonLinesDeltaStream:
    if deltas == "-":
        return JsonLinesDeltaStream(sys.stdin, resume_cursor, start_block)
    return JsonLinesDeltaStream.from_path(deltas, resume_cursor, start_block)


def _close(transport: Executor) -> None:
    close = getattr(transport, "close", None)
    if close is not None:
        close()


@app.command()
def run(
    config_path: Path = typer.Argument(..., help="Path to the YAML configuration file."),
    deltas: str = typer.Option("-", "--deltas", "-d", help="JSON lines delta file, '-' for stdin."),
    serve_metrics: bool = typer.Option(True, "--metrics/--no-metrics", help="Serve Prometheus metrics."),
    version: bool | None = typer.Option(
        None,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Apply table deltas to the document cache."""
    try:
        config = load_config(config_path)
    except ConfigError as e:
        err_console.print(f"[red]Configuration error:[/red] {e.message}")
        raise typer.Exit(1) from e

    settings = config.settings
    json_format = None if settings.log_format is None else settings.log_format == "json"
    configure_logging(settings.log_level, json_format=json_format)
    logger.info(
        "doccache_starting",
        contract=settings.contract_name,
        doc_table=settings.doc_table_name,
        edge_table=settings.edge_table_name,
        admin_url=settings.gql_admin_url,
        client_url=settings.gql_client_url,
        start_block=settings.start_block,
    )

    metrics = Metrics()
    if serve_metrics:
        try:
            metrics.serve(settings.prometheus_port)
        except OSError as e:
            logger.error("metrics_endpoint_failed", port=settings.prometheus_port, error=str(e))
            raise typer.Exit(1) from e

    admin_transport, data_transport = build_transports(settings)
    try:
        try:
            health = SchemaAdmin(admin_transport).health()
        except DoccacheError as e:
            logger.error("backend_unreachable", error=e.to_dict())
            raise typer.Exit(1) from e
        logger.info("backend_healthy", instances=len(health))

        try:
            cache = Doccache.create(config, admin_transport, data_transport)
            cursor = cache.start()
            handler = DeltaHandler(cache, settings.doc_table_name, settings.edge_table_name, metrics)
            applied = open_stream(deltas, cursor, settings.start_block).run(handler)
        except DoccacheError as e:
            logger.error("doccache_failed", error=e.to_dict())
            raise typer.Exit(1) from e
    finally:
        _close(admin_transport)
        _close(data_transport)

    console.print(f"[green]Applied {applied} records[/green], cursor: {cache.cursor}")


def main() -> None:
    app()


__all__ = ["app", "build_transports", "main", "open_stream"]
