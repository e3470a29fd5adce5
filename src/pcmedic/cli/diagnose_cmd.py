"""pcmedic diagnose command."""

from __future__ import annotations

import json
import sys
from pathlib import Path

import click

from pcmedic.analysis.bridge import AnthropicAnalysisBridge
from pcmedic.audit.recorder import AuditRecorder
from pcmedic.cli.common import open_ledger, save_diagnosis
from pcmedic.core.config import get_pcmedic_dir, load_config
from pcmedic.core.errors import PCMedicError
from pcmedic.core.models import Step
from pcmedic.core.output import console, get_progress, print_diagnosis, print_error, print_findings
from pcmedic.investigate.orchestrator import PlaybookOrchestrator
from pcmedic.investigate.playbooks import PLAYBOOKS, get_playbook
from pcmedic.investigate.session import DiagnosticSession


@click.command()
@click.argument("problem_type", type=click.Choice(sorted(PLAYBOOKS)))
@click.option("--findings-only", is_flag=True, help="Run the probes without asking for a diagnosis")
@click.option("--json", "as_json", is_flag=True, help="Print the result as JSON")
def diagnose(problem_type: str, findings_only: bool, as_json: bool):
    """Investigate PROBLEM_TYPE and propose fixes.

    Runs the playbook's read-only probes, then sends the findings for
    analysis. Nothing on the machine is changed.
    """
    project_path = Path.cwd()
    try:
        config = load_config(project_path)
        orchestrator = PlaybookOrchestrator(config)

        with get_progress() as progress:
            task = progress.add_task("Starting investigation...", total=None)

            def on_step(index: int, total: int, step: Step) -> None:
                label = step.description or step.probe_kind
                progress.update(task, description=f"[{index + 1}/{total}] {label}...")

            if findings_only:
                result = orchestrator.run(
                    get_playbook(problem_type),
                    {"problem_type": problem_type, "on_step": on_step},
                )
                outcome = None
            else:
                bridge = AnthropicAnalysisBridge(
                    model=config.analysis.model,
                    max_tokens=config.analysis.max_tokens,
                    min_confidence=config.analysis.min_confidence,
                )
                with open_ledger(config, project_path) as ledger:
                    recorder = AuditRecorder(ledger, config.audit.max_output_chars)
                    session = DiagnosticSession(orchestrator, bridge, recorder)
                    outcome = session.run(problem_type, on_step=on_step)
                result = outcome.result
    except (PCMedicError, ImportError) as e:
        print_error(str(e))
        sys.exit(1)

    if outcome is None:
        if as_json:
            click.echo(json.dumps(result.to_dict(), indent=2, default=str))
        else:
            print_findings(result)
        return

    save_diagnosis(get_pcmedic_dir(project_path), outcome.session_id, outcome.diagnosis)
    if as_json:
        click.echo(json.dumps(outcome.to_dict(), indent=2, default=str))
        return

    print_findings(result)
    print_diagnosis(outcome.diagnosis)
    console.print(f"  [dim]Session {outcome.session_id}[/dim]\n")
