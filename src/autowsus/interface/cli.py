"""
Command line interface for AutoWsus.

Commands:
    run       Execute a maintenance plan built from a preset or operation list
    health    Check services, database and disk; optionally start stopped services
    import    Import exported content on a disconnected server
    presets   List the available presets
    config    Create, validate or show the maintenance configuration
"""

from __future__ import annotations

import logging
import signal
import threading
from datetime import datetime
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console

from autowsus import __version__
from autowsus.application.container import Container
from autowsus.domain.config import MaintenanceSettings
from autowsus.domain.errors import CatalogError, ConfigurationError
from autowsus.domain.models import Operation
from autowsus.domain.plan import MaintenancePlan, MaintenancePreset, build_plan
from autowsus.infrastructure.config.repository import ConfigRepository
from autowsus.infrastructure.excel_report import write_run_report
from autowsus.infrastructure.json_report import write_json_report
from autowsus.infrastructure.logging_config import setup_logging
from autowsus.interface.cli_help import print_presets
from autowsus.interface.formatted_console import ConsoleRenderer

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="autowsus",
    help="🗄️ WSUS and SUSDB maintenance pipeline",
    add_completion=False,
    rich_markup_mode="rich",
    no_args_is_help=True,
)
config_app = typer.Typer(help="Create, validate or show the maintenance configuration", no_args_is_help=True)
app.add_typer(config_app, name="config")

CONFIG_DIR_OPTION = typer.Option(
    None, "--config-dir", "-c", help="Directory holding maintenance_config.json (default: ./config)"
)


def parse_operations(value: Optional[str]) -> list[Operation] | None:
    """Parse a comma-separated operation list such as 'sync,backup'."""
    if not value:
        return None
    try:
        return [Operation.from_string(part) for part in value.split(",") if part.strip()]
    except ValueError as e:
        valid = ", ".join(op.value for op in Operation)
        raise typer.BadParameter(f"{e}. Valid operations: {valid}") from e


def _load_container(config_dir: Optional[Path]) -> Container:
    repository = ConfigRepository(config_dir or Path.cwd() / "config")
    try:
        settings = repository.load_settings()
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error:[/red] {e}")
        raise typer.Exit(2)
    return Container(config_dir=repository.config_dir, settings=settings)


def _interactive_plan(plan: MaintenancePlan, export_days_given: bool) -> MaintenancePlan:
    """Ask for the export window and confirm deep cleanup downtime."""
    window = plan.export_window_days
    if plan.is_selected(Operation.EXPORT) and not export_days_given:
        window = typer.prompt("Export window in days", default=window, type=int)
        if window <= 0:
            raise typer.BadParameter("Export window must be positive")

    skip_ultimate = plan.skip_ultimate_cleanup
    if plan.is_selected(Operation.ULTIMATE_CLEANUP):
        skip_ultimate = not typer.confirm(
            "Deep cleanup stops the WSUS service for its duration. Continue?", default=False
        )

    return MaintenancePlan(
        operations=plan.operations,
        skip_ultimate_cleanup=skip_ultimate,
        skip_export=plan.skip_export,
        export_window_days=window,
        unattended=False,
    )


def _log_run_to_file(ctx: typer.Context, settings: MaintenanceSettings, renderer: ConsoleRenderer) -> None:
    """Send the DEBUG log of a run to paths.log_dir unless --log-file was given."""
    options = ctx.obj or {}
    if options.get("log_file"):
        return
    log_file = Path(settings.paths.log_dir) / f"autowsus_{datetime.now():%Y%m%d}.log"
    try:
        setup_logging(options.get("level", logging.INFO), str(log_file))
    except OSError as e:
        renderer.warning(f"Cannot write log file {log_file}: {e}")
        return
    renderer.info(f"Log file: {log_file}")


@app.callback()
def main_callback(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug output"),
    log_file: Optional[Path] = typer.Option(
        None, "--log-file", help="Also write a DEBUG log to this file (run default: paths.log_dir)"
    ),
):
    """
    🗄️ [bold]AutoWsus[/bold] - WSUS server and SUSDB maintenance

    Declines expired, superseded and old updates, approves new ones, purges
    declined metadata, maintains indexes, backs up SUSDB and exports content
    for disconnected sites.
    """
    level = logging.DEBUG if verbose else logging.INFO
    ctx.obj = {"level": level, "log_file": log_file}
    setup_logging(level, str(log_file) if log_file else None)


@app.command()
def run(
    ctx: typer.Context,
    preset: MaintenancePreset = typer.Option(MaintenancePreset.FULL, "--preset", "-p", help="Operation preset"),
    operations: Optional[str] = typer.Option(
        None, "--operations", "-o", help="Comma-separated operations; overrides the preset"
    ),
    unattended: bool = typer.Option(False, "--unattended", "-u", help="No prompts, defaults applied"),
    export_days: Optional[int] = typer.Option(None, "--export-days", min=1, help="Archive window in days"),
    skip_export: bool = typer.Option(False, "--skip-export", help="Do not export even if selected"),
    skip_ultimate_cleanup: bool = typer.Option(
        False, "--skip-ultimate-cleanup", help="Do not run deep cleanup even if selected"
    ),
    report_json: Optional[Path] = typer.Option(None, "--report-json", help="Write the run report as JSON"),
    report_xlsx: Optional[Path] = typer.Option(None, "--report-xlsx", help="Write the run report as Excel"),
    config_dir: Optional[Path] = CONFIG_DIR_OPTION,
):
    """Run maintenance. Exit code is 0 only when no phase reported an error."""
    container = _load_container(config_dir)
    plan = build_plan(
        preset=preset,
        operations=parse_operations(operations),
        unattended=unattended,
        export_window_days=export_days or container.settings.export.default_window_days,
        skip_ultimate_cleanup=skip_ultimate_cleanup,
        skip_export=skip_export,
    )
    if not unattended:
        plan = _interactive_plan(plan, export_days is not None)

    renderer = ConsoleRenderer(console)
    _log_run_to_file(ctx, container.settings, renderer)
    renderer.step(
        "Running: " + (", ".join(op.value for op in Operation if plan.is_selected(op)) or "classification only")
    )

    cancel_event = threading.Event()

    def request_cancel(signum, frame):
        if cancel_event.is_set():
            raise KeyboardInterrupt
        cancel_event.set()
        renderer.warning("Cancelling after the current phase (press Ctrl+C again to abort)")

    previous_handler = signal.signal(signal.SIGINT, request_cancel)
    try:
        result = container.pipeline.run(plan, cancel_event)
    finally:
        signal.signal(signal.SIGINT, previous_handler)

    renderer.render_run(result)
    if report_json:
        write_json_report(result, report_json)
        renderer.info(f"JSON report: {report_json}")
    if report_xlsx:
        write_run_report(result, report_xlsx)
        renderer.info(f"Excel report: {report_xlsx}")

    raise typer.Exit(0 if result.success else 1)


@app.command()
def presets():
    """List the operation presets."""
    print_presets(console)


@app.command()
def version():
    """Show the AutoWsus version."""
    console.print(f"AutoWsus {__version__}")


@app.command()
def health(
    repair: bool = typer.Option(False, "--repair", help="Start required services that are not running"),
    config_dir: Optional[Path] = CONFIG_DIR_OPTION,
):
    """Check WSUS, SQL Server and IIS services, SUSDB size and backup disk space."""
    container = _load_container(config_dir)
    renderer = ConsoleRenderer(console)
    service = container.health_service

    report = service.check()
    if repair and not report.healthy:
        renderer.step("Starting stopped services")
        result = service.repair()
        for name in result.started:
            renderer.success(f"Started {name}")
        for name in result.failed:
            renderer.error(f"Could not start {name}")
        report = service.check()

    renderer.render_health(report)
    raise typer.Exit(0 if report.healthy else 1)


@app.command("import")
def import_content(
    source: Optional[Path] = typer.Option(
        None, "--source", "-s", help="Export root to import from (default: paths.export_root)"
    ),
    archive: Optional[str] = typer.Option(
        None, "--archive", help="Import one dated archive (YYYY-MM-DD, or 'latest') instead of the mirror"
    ),
    with_backup: bool = typer.Option(False, "--with-backup", help="Also copy SUSDB backups into paths.backup_dir"),
    config_dir: Optional[Path] = CONFIG_DIR_OPTION,
):
    """Import exported content into paths.content_dir on a disconnected server."""
    container = _load_container(config_dir)
    settings = container.settings
    renderer = ConsoleRenderer(console)

    export_root = source or (Path(settings.paths.export_root) if settings.paths.export_root else None)
    if export_root is None:
        raise typer.BadParameter("No --source given and paths.export_root is not configured")

    service = container.import_service
    if archive == "latest":
        archive = service.latest_archive(export_root)
        if archive is None:
            renderer.error(f"No dated archive under {export_root}")
            raise typer.Exit(1)

    renderer.step(f"Importing from {service.source_root(export_root, archive)}")
    outcome = service.import_content(
        export_root,
        settings.paths.content_dir,
        archive=archive,
        backup_dir=settings.paths.backup_dir if with_backup else None,
    )
    renderer.render_import(outcome)
    raise typer.Exit(0 if outcome.succeeded else 1)


@config_app.command("init")
def config_init(
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing configuration"),
    config_dir: Optional[Path] = CONFIG_DIR_OPTION,
):
    """Write maintenance_config.json with every setting at its default."""
    repository = ConfigRepository(config_dir or Path.cwd() / "config")
    renderer = ConsoleRenderer(console)
    existing = repository.config_path()
    if existing and not force:
        renderer.error(f"{existing} already exists (use --force to overwrite)")
        raise typer.Exit(1)

    path = repository.save_json_file(MaintenanceSettings().model_dump(mode="json"))
    renderer.success(f"Configuration written: {path}")


@config_app.command("validate")
def config_validate(
    check_connectivity: bool = typer.Option(
        False, "--check-connectivity", help="Also test the SQL and WSUS connections"
    ),
    config_dir: Optional[Path] = CONFIG_DIR_OPTION,
):
    """Validate maintenance_config.json and optionally test connectivity."""
    container = _load_container(config_dir)
    path = container.config_repository.config_path()
    renderer = ConsoleRenderer(console)
    renderer.success(f"Configuration valid ({path or 'defaults, no file found'})")

    if not check_connectivity:
        return

    ok = True
    if container.sql.test_connection():
        renderer.success(f"SQL Server reachable: {container.settings.sql.instance}")
    else:
        renderer.error(f"SQL Server unreachable: {container.settings.sql.instance}")
        ok = False
    try:
        renderer.success(f"WSUS reachable: {container.catalog.connect()}")
    except CatalogError as e:
        renderer.error(f"WSUS unreachable: {e}")
        ok = False
    if not ok:
        raise typer.Exit(1)


@config_app.command("show")
def config_show(config_dir: Optional[Path] = CONFIG_DIR_OPTION):
    """Print the effective settings with secrets masked."""
    container = _load_container(config_dir)
    console.print_json(container.settings.model_dump_json(indent=2))


def main() -> None:
    """Console script entry point."""
    app()
