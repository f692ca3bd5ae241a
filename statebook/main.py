from __future__ import annotations

import sys
from typing import List, Optional

import typer

from statebook.config import get_settings
from statebook.dispatcher import Dispatcher, available_operations
from statebook.reporter import print_result
from statebook.store import PostgresStateStore, available_backends, open_store
from statebook.utils.logging import configure_logging, get_logger

log = get_logger(__name__)

app = typer.Typer(help="statebook: records, a category index and history over a key-value store.")


@app.command()
def info() -> None:
    """
    Show effective configuration values.
    """
    settings = get_settings()
    typer.echo(
        f"backend={settings.store_backend} (available: {', '.join(available_backends())}) | "
        f"DB={settings.db_user}@{settings.db_host}:{settings.db_port}/{settings.db_name} | "
        f"page_size={settings.default_page_size} scan_batch={settings.scan_batch_size}"
    )


@app.command()
def operations() -> None:
    """
    List the operation names accepted by `invoke`.
    """
    for name in available_operations():
        typer.echo(name)


@app.command("init-db")
def init_db(
    dsn: Optional[str] = typer.Option(None, "--dsn", help="Optional DSN override for Postgres."),
) -> None:
    """
    Create the PostgreSQL tables and indexes (idempotent).
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    with PostgresStateStore.connect(dsn) as store:
        store.ensure_schema()
    typer.echo("Schema ready.")


@app.command()
def invoke(
    function: str = typer.Argument(..., help="Operation name (see `statebook operations`)."),
    args: Optional[List[str]] = typer.Argument(None, help="Operation arguments, as strings."),
    table: bool = typer.Option(
        False,
        "--table",
        "-t",
        help="Render record and history arrays as a table instead of raw JSON.",
    ),
) -> None:
    """
    Run one operation against the configured store and print its payload.
    """
    settings = get_settings()
    configure_logging(level=settings.log_level, json_logs=settings.log_json)
    if settings.store_backend == "memory":
        log.warning(
            "STORE_BACKEND=memory: the store starts empty and is discarded when this command exits"
        )

    with open_store(settings) as store:
        result = Dispatcher(store).invoke(function, args or [])

    if table:
        print_result(result, function)
    elif result["status"] == 200:
        typer.echo(result["payload"].decode("utf-8"))
    else:
        typer.echo(f"Error {result['status']}: {result['message']}", err=True)
    if result["status"] != 200:
        raise typer.Exit(code=1)


def main() -> None:
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)


if __name__ == "__main__":
    main()
