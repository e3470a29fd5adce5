"""pcmedic restore-points command."""

from __future__ import annotations

from pathlib import Path

import click

from pcmedic.core.config import get_pcmedic_dir
from pcmedic.core.output import console, print_restore_points
from pcmedic.safety.restore import RestorePointManager


@click.command(name="restore-points")
def restore_points():
    """List the restore points PCMedic created before risky fixes."""
    manager = RestorePointManager(get_pcmedic_dir(Path.cwd()))
    points = manager.list()
    if not points:
        console.print("\n  No restore points recorded.\n")
        if not manager.supported:
            console.print("  [dim]Restore points are only created on Windows.[/dim]\n")
        return
    print_restore_points(points)
