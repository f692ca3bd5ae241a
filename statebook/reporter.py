from __future__ import annotations

import json
from typing import Any, Dict, List, Optional

from rich import box
from rich.console import Console
from rich.table import Table

from statebook.dispatcher import InvokeResult


def _split_metadata(members: List[Any]) -> tuple[List[Any], Optional[Dict[str, Any]]]:
    """Separate the trailing pagination element, if any, from the data rows."""
    if members and isinstance(members[-1], dict) and "responseMetadata" in members[-1]:
        return members[:-1], members[-1]["responseMetadata"]
    return members, None


def _record_table(title: str, rows: List[Dict[str, Any]]) -> Table:
    table = Table(title=title, box=box.ROUNDED, show_lines=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Category")
    table.add_column("Quantity", justify="right")
    table.add_column("Owner", style="green")
    for row in rows:
        record = row.get("record") or {}
        table.add_row(
            str(row.get("key", "")),
            str(record.get("category", "")),
            str(record.get("quantity", "")),
            str(record.get("owner", "")),
        )
    return table


def _history_table(title: str, rows: List[Dict[str, Any]]) -> Table:
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Tx", style="cyan", no_wrap=True)
    table.add_column("Timestamp")
    table.add_column("Deleted", justify="center")
    table.add_column("Owner", style="green")
    for row in rows:
        value = row.get("value") or {}
        table.add_row(
            str(row.get("txId", ""))[:12],
            str(row.get("timestamp", "")),
            "yes" if row.get("isDelete") else "",
            str(value.get("owner", "")),
        )
    return table


def print_result(result: InvokeResult, function: str, console: Optional[Console] = None) -> None:
    """
    Render an invocation result.

    Arrays of records or history entries become rich tables, with pagination
    metadata on a footer line; any other payload is printed as text.
    """
    console = console or Console()

    if result["status"] != 200:
        console.print(f"[red]Error {result['status']}:[/red] {result['message']}")
        return

    text = result["payload"].decode("utf-8")
    if not text:
        console.print("[green]OK[/green]")
        return

    try:
        members = json.loads(text)
    except ValueError:
        console.print(text)
        return
    if not isinstance(members, list):
        console.print_json(text)
        return

    rows, metadata = _split_metadata(members)
    if not rows:
        console.print("[yellow]No results to display.[/yellow]")
    elif "txId" in rows[0]:
        console.print(_history_table(function, rows))
    else:
        console.print(_record_table(function, rows))

    if metadata is not None:
        console.print(
            f"records: {metadata.get('recordsCount')} │ bookmark: {metadata.get('bookmark')!r}"
        )


__all__ = ["print_result"]
