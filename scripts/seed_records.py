"""
Record generation and loading script for statebook.

Implements deterministic pseudo-random record generation, CSV emission, and
loading through the dispatcher (so every record gets its index entry and a
history version).
"""

from __future__ import annotations

import csv
import random
import sys
import tempfile
import time
from pathlib import Path

import typer

from statebook.dispatcher import Dispatcher, Operation
from statebook.store import PostgresStateStore, StateStore

app = typer.Typer(help="Generate synthetic records and load them into Postgres via the dispatcher.")

CSV_HEADER = ["id", "category", "quantity", "owner"]
CATEGORIES = ["blue", "red", "green", "yellow"]
OWNERS = ["tom", "jerry", "spike", "tyke"]


def _generate_rows_csv(csv_path: Path, rows: int, seed: int, prefix: str = "picture") -> None:
    rng = random.Random(seed)
    width = len(str(rows))

    with csv_path.open("w", newline="", encoding="utf-8") as f:
        writer = csv.writer(f)
        writer.writerow(CSV_HEADER)
        for i in range(rows):
            writer.writerow(
                [
                    f"{prefix}{i:0{width}d}",
                    rng.choice(CATEGORIES),
                    str(rng.randint(1, 500)),
                    rng.choice(OWNERS),
                ]
            )


def _load_csv(store: StateStore, csv_path: Path) -> tuple[int, int]:
    """Create every row; returns (created, failed)."""
    dispatcher = Dispatcher(store)
    created = failed = 0
    with csv_path.open("r", newline="", encoding="utf-8") as f:
        reader = csv.reader(f)
        next(reader)
        for row in reader:
            result = dispatcher.invoke(Operation.CREATE.value, row)
            if result["status"] == 200:
                created += 1
            else:
                failed += 1
    return created, failed


@app.command()
def main(
    rows: int = typer.Option(
        100,
        "--rows",
        "-r",
        help="Number of records to generate.",
    ),
    seed: int = typer.Option(
        42,
        "--seed",
        help="Deterministic RNG seed.",
    ),
    output: Path | None = typer.Option(
        None,
        "--output",
        "-o",
        help="Optional CSV output path (if omitted, a temp file will be used).",
    ),
    dsn: str | None = typer.Option(
        None,
        "--dsn",
        help="Optional DSN override for Postgres.",
    ),
    no_load: bool = typer.Option(
        False,
        "--no-load",
        help="Only generate CSV; skip loading into Postgres.",
    ),
) -> None:
    """
    Generate synthetic records and optionally load them into Postgres.
    """
    start = time.perf_counter()
    if output:
        csv_path = output
        csv_path.parent.mkdir(parents=True, exist_ok=True)
    else:
        tmpdir = Path(tempfile.mkdtemp(prefix="statebook_csv_"))
        csv_path = tmpdir / "records.csv"

    typer.echo(f"Generating {rows:,} records -> {csv_path} (seed={seed})")
    _generate_rows_csv(csv_path, rows=rows, seed=seed)

    if no_load:
        typer.echo("Skipping load (no-load flag set).")
        return

    with PostgresStateStore.connect(dsn) as store:
        store.ensure_schema()
        created, failed = _load_csv(store, csv_path)

    total_duration = time.perf_counter() - start
    typer.echo(f"Created {created:,} records ({failed:,} failed) in {total_duration:.2f}s.")


if __name__ == "__main__":
    try:
        app()
    except KeyboardInterrupt:
        typer.echo("Cancelled by user.", err=True)
        sys.exit(130)
