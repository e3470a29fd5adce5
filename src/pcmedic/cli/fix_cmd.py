"""pcmedic fix command."""

from __future__ import annotations

import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

import click
from rich.prompt import Confirm

from pcmedic.audit.recorder import AuditRecorder
from pcmedic.cli.common import load_diagnosis, open_ledger
from pcmedic.core.commands import ShellCommandRunner
from pcmedic.core.config import get_pcmedic_dir, load_config
from pcmedic.core.errors import (
    ExecutionInProgress,
    PCMedicError,
    RollbackFailure,
    SafetyRejection,
    StepExecutionFailure,
)
from pcmedic.core.models import ExecutionResult
from pcmedic.core.output import (
    RISK_COLORS,
    console,
    print_error,
    print_execution_failure,
    print_execution_result,
    print_fix_preview,
    print_progress_event,
)
from pcmedic.safety.guard import SafetyGuard
from pcmedic.safety.progress import ProgressChannel
from pcmedic.safety.restore import RestorePointManager


@click.command()
@click.argument("fix_id", required=False)
@click.option("--preview", is_flag=True, help="Show the fix and run the safety checks without applying")
@click.option("--yes", "-y", is_flag=True, help="Skip the confirmation prompt")
def fix(fix_id: str | None, preview: bool, yes: bool):
    """Apply a fix proposed by the last `pcmedic diagnose`.

    Every fix is safety-checked first. Medium and high risk fixes get a
    restore point before any command runs, and a failed step rolls the
    machine back to it.
    """
    project_path = Path.cwd()
    try:
        config = load_config(project_path)
        state_dir = get_pcmedic_dir(project_path)
        session_id, diagnosis = load_diagnosis(state_dir)
    except PCMedicError as e:
        print_error(str(e))
        sys.exit(1)

    if not fix_id:
        _list_fixes(diagnosis.fixes)
        return

    proposal = diagnosis.get_fix(fix_id)
    if proposal is None:
        print_error(f"Fix {fix_id} not found in the last diagnosis.")
        console.print("  Run `pcmedic fix` to list the proposed fixes.\n")
        sys.exit(1)

    print_fix_preview(proposal)

    runner = ShellCommandRunner(default_timeout=config.safety.command_timeout_seconds)
    progress = ProgressChannel()
    progress.subscribe(print_progress_event)

    with open_ledger(config, project_path) as ledger:
        guard = SafetyGuard(
            runner,
            AuditRecorder(ledger, config.audit.max_output_chars),
            RestorePointManager(state_dir, timeout=config.safety.restore_point_timeout_seconds),
            progress,
            config.safety,
            state_dir,
        )

        if preview:
            try:
                guard.validate(proposal)
            except SafetyRejection as e:
                _print_rejection(e)
                sys.exit(1)
            console.print("  [green]Passes safety checks.[/green] Nothing was run.\n")
            return

        if not yes:
            if not Confirm.ask("  Apply this fix?", default=False):
                console.print("  [dim]Skipped.[/dim]")
                return

        try:
            result = _execute(guard, proposal, session_id)
        except SafetyRejection as e:
            _print_rejection(e)
            sys.exit(1)
        except (StepExecutionFailure, RollbackFailure) as e:
            print_execution_failure(e)
            sys.exit(1)
        except ExecutionInProgress as e:
            print_error(str(e))
            sys.exit(1)

    print_execution_result(result)
    if proposal.requires_restart:
        console.print("  [yellow]Restart the machine to finish applying this fix.[/yellow]\n")


def _execute(guard: SafetyGuard, proposal, session_id: str | None) -> ExecutionResult:
    """Run the fix on a worker thread so Ctrl-C cancels between steps."""
    cancel = threading.Event()
    with ThreadPoolExecutor(max_workers=1) as pool:
        future = pool.submit(guard.execute, proposal, session_id, cancel)
        while True:
            try:
                return future.result()
            except KeyboardInterrupt:
                cancel.set()
                console.print("\n  [yellow]Cancelling after the current step...[/yellow]")


def _print_rejection(error: SafetyRejection) -> None:
    print_error(f"Refused: {error.reason}")
    console.print(f"  [dim]rule: {error.rule}[/dim]")
    if error.match:
        console.print(f"  [dim]matched: {error.match}[/dim]")
    console.print()


def _list_fixes(fixes) -> None:
    if not fixes:
        console.print("\n  The last diagnosis proposed no fixes.\n")
        return
    console.print("\n  [bold]Proposed fixes[/bold]\n")
    for proposal in fixes:
        color = RISK_COLORS.get(proposal.risk_level, "white")
        mode = "" if proposal.automatable else "  [dim](manual)[/dim]"
        console.print(
            f"  {proposal.id}  {proposal.title}  [{color}]{proposal.risk_level or '?'}[/{color}]{mode}"
        )
    console.print("\n  Run: [bold]pcmedic fix <FIX_ID>[/bold]\n")
