"""
Formatted Console Output - Rich Renderer for CLI.

Renders a finalized MaintenanceRun: a summary panel, the phase table, and
every warning and error verbatim. Health reports and import results get
their own compact views.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autowsus.domain.models import HealthReport, ImportDescriptor, MaintenanceRun, PhaseStatus
from autowsus.domain.outcome import Outcome


class Icons:
    """UTF-8 Icons."""

    CHECK = "✅"
    CROSS = "❌"
    WARN = "⚠️"
    SKIP = "⏭️"
    CHART = "📊"
    DB = "🗄️"
    ARROW = "➜"


STATUS_STYLES = {
    PhaseStatus.COMPLETED: ("green", Icons.CHECK),
    PhaseStatus.FAILED: ("bold red", Icons.CROSS),
    PhaseStatus.SKIPPED: ("dim", Icons.SKIP),
}


class ConsoleRenderer:
    """Renders formatted output to the console."""

    def __init__(self, console: Console | None = None):
        self.console = console or Console()

    def header(self, title: str):
        self.console.rule(f"[bold cyan]{title}[/bold cyan]")

    def info(self, message: str):
        self.console.print(f"[blue]{message}[/blue]")

    def success(self, message: str):
        self.console.print(f"[green]{Icons.CHECK} {message}[/green]")

    def warning(self, message: str):
        self.console.print(f"[yellow]{Icons.WARN} {message}[/yellow]")

    def error(self, message: str):
        self.console.print(f"[red]{Icons.CROSS} {message}[/red]")

    def step(self, message: str):
        self.console.print(f"[cyan]{Icons.ARROW} {message}[/cyan]")

    def render_run(self, run: MaintenanceRun):
        """Render the full run report."""
        self.header(f"{Icons.CHART} Maintenance Summary")

        summary = Table(show_header=False, box=box.SIMPLE, padding=(0, 2))
        summary.add_column("Item", style="bold")
        summary.add_column("Value")
        summary.add_row("Duration", f"{run.duration_seconds:.0f}s")
        summary.add_row(
            "Declined",
            f"{run.declined_total} (expired {run.declined_expired}, "
            f"superseded {run.declined_superseded}, old {run.declined_old})",
        )
        summary.add_row("Approved", str(run.approved))
        summary.add_row(f"{Icons.DB} Database size", f"{run.database_size_gb:.2f} GB")
        if run.backup:
            summary.add_row("Backup", f"{run.backup.file_path} ({run.backup.size_mb:.1f} MB)")
        if run.export:
            summary.add_row(
                "Export",
                f"{run.export.file_count} files, {run.export.size_gb:.2f} GB -> {run.export.archive_path}",
            )
        self.console.print(summary)

        phases = Table(title="Phases", box=box.ROUNDED, header_style="bold magenta")
        phases.add_column("Phase", style="bright_cyan")
        phases.add_column("Status")
        phases.add_column("Duration", justify="right")
        for phase in run.phases:
            style, icon = STATUS_STYLES[phase.status]
            phases.add_row(
                phase.name.value,
                f"[{style}]{icon} {phase.status.value}[/{style}]",
                f"{phase.duration_seconds:.1f}s",
            )
        self.console.print(phases)

        # markup=False keeps brackets in messages literal
        for message in run.errors:
            self.console.print(f"{Icons.CROSS} {message}", style="red", markup=False)
        for message in run.warnings:
            self.console.print(f"{Icons.WARN} {message}", style="yellow", markup=False)

        if run.success:
            verdict = Panel(
                f"[bold green]{Icons.CHECK} Maintenance completed[/bold green] "
                f"with {len(run.warnings)} warning(s)",
                border_style="green",
            )
        else:
            verdict = Panel(
                f"[bold red]{Icons.CROSS} Maintenance failed[/bold red]: "
                f"{len(run.errors)} error(s), {len(run.warnings)} warning(s)",
                border_style="red",
            )
        self.console.print(verdict)

    def render_health(self, report: HealthReport):
        """Render service states, database state and every issue found."""
        self.header(f"{Icons.DB} WSUS Health")

        table = Table(box=box.ROUNDED, header_style="bold magenta")
        table.add_column("Check", style="bright_cyan")
        table.add_column("Status")
        for service in report.services:
            style, icon = ("green", Icons.CHECK) if service.running else ("bold red", Icons.CROSS)
            table.add_row(f"Service {service.name}", f"[{style}]{icon} {service.status}[/{style}]")
        if report.database_connected:
            table.add_row("Database", f"[green]{Icons.CHECK} {report.database_size_gb:.2f} GB[/green]")
        else:
            table.add_row("Database", f"[bold red]{Icons.CROSS} unreachable[/bold red]")
        self.console.print(table)

        for message in report.issues:
            self.console.print(f"{Icons.WARN} {message}", style="yellow", markup=False)
        if report.healthy:
            self.console.print(Panel(f"[bold green]{Icons.CHECK} Healthy[/bold green]", border_style="green"))
        else:
            self.console.print(Panel(
                f"[bold red]{Icons.CROSS} Unhealthy[/bold red]: {len(report.issues)} issue(s)",
                border_style="red",
            ))

    def render_import(self, outcome: Outcome[ImportDescriptor]):
        descriptor = outcome.value
        if descriptor:
            self.success(
                f"Imported {descriptor.file_count} files ({descriptor.size_gb:.2f} GB) "
                f"from {descriptor.source_path} into {descriptor.content_dir}"
            )
            for path in descriptor.backup_files:
                self.info(f"Backup copied: {path}")
        for message in outcome.warnings:
            self.console.print(f"{Icons.WARN} {message}", style="yellow", markup=False)
        if not outcome.succeeded:
            self.console.print(f"{Icons.CROSS} Import failed: {outcome.error}", style="red", markup=False)
