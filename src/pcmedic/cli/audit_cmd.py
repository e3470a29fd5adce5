"""pcmedic audit commands."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click
from rich.prompt import Confirm

from pcmedic.audit.entries import EntryFilter, EntryType
from pcmedic.cli.common import open_ledger
from pcmedic.core.config import load_config
from pcmedic.core.errors import PCMedicError
from pcmedic.core.output import console, print_audit_entries, print_error, print_statistics


@click.group()
def audit():
    """Inspect the audit log of diagnostics and fixes."""


@audit.command()
@click.option("--limit", type=int, default=50, help="Number of entries to show")
@click.option("--session", "session_id", help="Only entries from this session")
@click.option(
    "--type", "types", multiple=True,
    type=click.Choice([t.value for t in EntryType]),
    help="Only entries of this type (repeatable)",
)
@click.option("--json", "as_json", is_flag=True, help="Print entries as JSON")
def show(limit: int, session_id: str | None, types: tuple[str, ...], as_json: bool):
    """Show the most recent audit entries."""
    entry_filter = EntryFilter(
        types=tuple(EntryType(t) for t in types),
        session_id=session_id,
        limit=limit,
        newest_first=True,
    )
    try:
        config = load_config(Path.cwd())
        with open_ledger(config) as ledger:
            entries = ledger.query(entry_filter)
    except PCMedicError as e:
        print_error(str(e))
        sys.exit(1)

    if as_json:
        click.echo(json.dumps([e.to_dict() for e in entries], indent=2, default=str))
        return
    if not entries:
        console.print("\n  No audit entries yet. Run `pcmedic diagnose` to start.\n")
        return
    print_audit_entries(entries)


@audit.command()
@click.option("--json", "as_json", is_flag=True, help="Print statistics as JSON")
def stats(as_json: bool):
    """Show running totals of diagnostics and fixes."""
    try:
        config = load_config(Path.cwd())
        with open_ledger(config) as ledger:
            statistics = ledger.statistics()
    except PCMedicError as e:
        print_error(str(e))
        sys.exit(1)

    if as_json:
        click.echo(json.dumps(statistics.to_dict(), indent=2))
        return
    print_statistics(statistics)


@audit.command()
@click.option("--output", "-o", type=click.Path(dir_okay=False), help="Write to FILE instead of stdout")
def export(output: str | None):
    """Export statistics and every entry as one JSON document."""
    try:
        config = load_config(Path.cwd())
        with open_ledger(config) as ledger:
            document = ledger.export()
    except PCMedicError as e:
        print_error(str(e))
        sys.exit(1)

    text = json.dumps(document, indent=2, default=str)
    if output is None:
        click.echo(text)
        return
    Path(output).write_text(text, encoding="utf-8")
    console.print(f"\n  Exported {len(document['logs'])} entries to {output}\n")


@audit.command()
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
def clear(yes: bool):
    """Delete every audit entry and reset the statistics."""
    if not yes:
        if not Confirm.ask("  Delete the entire audit log?", default=False):
            console.print("  [dim]Cancelled.[/dim]")
            return
    try:
        config = load_config(Path.cwd())
        with open_ledger(config) as ledger:
            ledger.clear()
    except PCMedicError as e:
        print_error(str(e))
        sys.exit(1)
    console.print("\n  Audit log cleared.\n")
