"""pcmedic playbooks command."""

from __future__ import annotations

import click

from pcmedic.core.output import console
from pcmedic.investigate.playbooks import PLAYBOOKS


@click.command()
def playbooks():
    """List the available problem types and the probes each one runs."""
    console.print("\n  [bold]Available playbooks[/bold]\n")
    for key, playbook in PLAYBOOKS.items():
        console.print(f"  [cyan]{key:<10}[/cyan] {playbook.description}")
        probes = " -> ".join(step.probe_kind for step in playbook.steps)
        console.print(f"  {'':<10} [dim]{probes}[/dim]")
    console.print("\n  Run: [bold]pcmedic diagnose <PROBLEM_TYPE>[/bold]\n")
