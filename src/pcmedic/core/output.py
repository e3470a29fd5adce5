"""Rich terminal formatting for PCMedic output."""

from __future__ import annotations

from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from pcmedic.audit.entries import AuditEntry, Statistics
from pcmedic.core.errors import RollbackFailure, StepExecutionFailure
from pcmedic.core.models import (
    Diagnosis,
    ExecutionRecord,
    ExecutionResult,
    FixProposal,
    InvestigationResult,
    ProgressEvent,
    RestorePoint,
    Severity,
)

console = Console()
error_console = Console(stderr=True)


SEVERITY_ICONS = {
    Severity.CRITICAL: "[red]●[/red]",
    Severity.WARNING: "[yellow]●[/yellow]",
    Severity.INFO: "[blue]●[/blue]",
}

SEVERITY_COLORS = {
    Severity.CRITICAL: "red",
    Severity.WARNING: "yellow",
    Severity.INFO: "blue",
}

RISK_COLORS = {"low": "green", "medium": "yellow", "high": "red"}


def print_error(message: str) -> None:
    error_console.print(f"\n  [red]{message}[/red]\n")


def print_findings(result: InvestigationResult) -> None:
    """Print what each probe found, in step order."""
    lines = [""]
    for finding in result.findings:
        if finding.failed:
            lines.append(f"  [red]✗ {finding.probe_kind}[/red]  [dim]{finding.error}[/dim]")
        elif finding.warnings:
            lines.append(f"  [yellow]! {finding.probe_kind}[/yellow]")
        else:
            lines.append(f"  [green]✓ {finding.probe_kind}[/green]  [dim]no problems found[/dim]")
        for warning in finding.warnings:
            icon = SEVERITY_ICONS.get(warning.severity, "●")
            lines.append(f"      {icon} {warning.message}")
    lines.append("")
    lines.append(
        f"  {len(result.findings)} probes | {result.warning_count} warnings | "
        f"{len(result.failed_probes)} failed"
    )
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Investigation: {result.playbook}[/bold]",
        border_style="cyan",
        padding=(0, 1),
    ))


def print_diagnosis(diagnosis: Diagnosis) -> None:
    lines = ["", f"  {diagnosis.summary}", ""]
    for issue in diagnosis.issues:
        icon = SEVERITY_ICONS.get(issue.severity, "●")
        priority = f" [dim]({issue.priority})[/dim]" if issue.priority else ""
        lines.append(f"  {icon} [bold]{issue.title}[/bold]{priority}")
        if issue.description:
            lines.append(f"     {issue.description}")
    if diagnosis.issues:
        lines.append("")

    if diagnosis.fixes:
        lines.append("  [bold]Proposed fixes:[/bold]")
        for fix in diagnosis.fixes:
            color = RISK_COLORS.get(fix.risk_level, "white")
            mode = "auto" if fix.automatable else "manual"
            lines.append(
                f"    {fix.id}  {fix.title}  [{color}]{fix.risk_level or '?'} risk[/{color}]"
                f"  [dim]({mode})[/dim]"
            )
        lines.append("")
        lines.append("  Apply: [bold]pcmedic fix <FIX_ID>[/bold]")
        lines.append("")

    critical = any(i.severity is Severity.CRITICAL for i in diagnosis.issues)
    console.print(Panel(
        "\n".join(lines),
        title="[bold]Diagnosis[/bold]",
        border_style="red" if critical else "green",
        padding=(0, 1),
    ))


def print_fix_preview(fix: FixProposal) -> None:
    color = RISK_COLORS.get(fix.risk_level, "white")
    lines = [""]
    lines.append(f"  Risk: [{color}]{fix.risk_level.upper() or 'UNKNOWN'}[/{color}]")
    if fix.estimated_time:
        lines.append(f"  Time: {fix.estimated_time}")
    if fix.requires_restart:
        lines.append("  [yellow]A restart is required afterwards.[/yellow]")
    lines.append("")
    if fix.why:
        lines.append(f"  {fix.why}")
        lines.append("")
    for index, command in enumerate(fix.commands):
        lines.append(f"  {index + 1}. {fix.display_step(index)}")
        lines.append(f"     [dim]$ {command}[/dim]")
    lines.append("")

    console.print(Panel(
        "\n".join(lines),
        title=f"[bold]Fix Preview — {fix.title}[/bold]",
        border_style=color,
        padding=(0, 1),
    ))


def print_progress_event(event: ProgressEvent) -> None:
    """Line-per-event progress renderer used by ``pcmedic fix``."""
    if event.stage == "executing-step":
        console.print(f"  [cyan]▶[/cyan] {event.message}")
    elif event.stage == "step-complete":
        console.print(f"    [green]✓[/green] [dim]{event.message}[/dim]")
    elif event.stage in ("step-failed", "rollback-failed"):
        console.print(f"    [red]✗ {event.message}[/red]")
    elif event.stage == "rollback":
        console.print(f"  [yellow]{event.message}[/yellow]")
    else:
        console.print(f"  [dim]{event.percentage:>3}%  {event.message}[/dim]")


def print_execution_result(result: ExecutionResult) -> None:
    console.print()
    console.print(
        f"  [green]✅ {result.record.fix_id}[/green]  "
        f"{len(result.record.step_logs)} step(s) completed"
    )
    if result.restore_point:
        console.print(f"  [dim]Restore point {result.restore_point.id} available.[/dim]")
    if result.verification_failure:
        console.print(f"  [yellow]{result.verification_failure}[/yellow]")
    console.print()


def print_execution_failure(error: StepExecutionFailure | RollbackFailure) -> None:
    record: ExecutionRecord = error.record
    console.print()
    console.print(f"  [red]❌ {record.fix_id}[/red]  {error}")
    for step in record.step_logs:
        mark = "[green]✓[/green]" if step.success else "[red]✗[/red]"
        console.print(f"    {mark} {step.step_number}. {step.command}")
    if isinstance(error, RollbackFailure):
        console.print(f"\n  [red bold]{error.recovery_guidance}[/red bold]")
    elif error.rolled_back:
        console.print(f"  [yellow]Rolled back to restore point {record.restore_point_id}.[/yellow]")
    console.print()


def print_restore_points(points: list[RestorePoint]) -> None:
    table = Table(title="Restore Points", show_lines=False)
    table.add_column("ID", style="cyan")
    table.add_column("Created")
    table.add_column("Description")
    for point in points:
        table.add_row(point.id, point.created_at.strftime("%Y-%m-%d %H:%M"), point.description)
    console.print(table)


def print_audit_entries(entries: list[AuditEntry]) -> None:
    table = Table(title="Audit Log")
    table.add_column("Time", style="dim")
    table.add_column("Type")
    table.add_column("Status")
    table.add_column("Session", style="dim")
    table.add_column("Detail")
    for entry in entries:
        detail = (
            entry.data.get("fix_id")
            or entry.data.get("problem_type")
            or ""
        )
        if entry.data.get("error"):
            detail = f"{detail} {entry.data['error']}".strip()
        status = entry.status or ""
        color = "red" if status in ("failed", "rejected", "error") else "green"
        table.add_row(
            entry.timestamp.strftime("%Y-%m-%d %H:%M:%S"),
            entry.type.value,
            f"[{color}]{status}[/{color}]" if status else "",
            (entry.session_id or "")[:8],
            detail,
        )
    console.print(table)


def print_statistics(stats: Statistics) -> None:
    lines = [
        "",
        f"  Diagnostics run:     {stats.total_diagnostics}",
        f"  Fixes recommended:   {stats.total_fixes_recommended}",
        f"  Fixes executed:      {stats.total_fixes_executed}",
        f"    successful:        [green]{stats.total_fixes_successful}[/green]",
        f"    failed:            [red]{stats.total_fixes_failed}[/red]",
        "",
    ]
    console.print(Panel("\n".join(lines), title="[bold]PCMedic Statistics[/bold]", padding=(0, 1)))


def get_progress() -> Progress:
    """Create a spinner progress instance for running probes."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console,
    )
