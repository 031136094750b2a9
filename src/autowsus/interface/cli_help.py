"""
Rich-formatted CLI help display.

Preset listing and the quick-start banner for the AutoWsus CLI.
"""

from rich import box
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from autowsus.domain.plan import PRESET_DESCRIPTIONS, PRESET_OPERATIONS, MaintenancePreset

EXE_NAME = "autowsus"


def presets_table() -> Table:
    """Table of presets with their operations."""
    table = Table(show_header=True, header_style="bold magenta", box=box.ROUNDED)
    table.add_column("Preset", style="bright_cyan")
    table.add_column("Operations", style="white")
    table.add_column("Description", style="dim")

    order = ["sync", "cleanup", "ultimate_cleanup", "backup", "export"]
    for preset in MaintenancePreset:
        operations = sorted((op.value for op in PRESET_OPERATIONS[preset]), key=order.index)
        table.add_row(preset.value, ", ".join(operations), PRESET_DESCRIPTIONS[preset])
    return table


def print_presets(console: Console | None = None) -> None:
    """Print the presets panel and usage examples."""
    console = console or Console()
    console.print(Panel(presets_table(), title="[bold green]📋 PRESETS[/bold green]", border_style="green"))

    console.print("\n[bold yellow]EXAMPLES:[/bold yellow]")
    examples = [
        ("Nightly, unattended:", f"{EXE_NAME} run --preset quick --unattended"),
        ("Full maintenance with a 14-day archive:", f"{EXE_NAME} run --preset full --export-days 14"),
        ("Explicit operations:", f"{EXE_NAME} run --operations sync,backup --skip-export"),
        ("Check and repair services:", f"{EXE_NAME} health --repair"),
        (
            "Import the newest archive on a disconnected server:",
            f"{EXE_NAME} import -s E:\\WSUS-Export --archive latest",
        ),
    ]
    for label, cmd in examples:
        console.print(f"  [dim]{label}[/dim]")
        console.print(f"    [bright_green]{cmd}[/bright_green]")
    console.print()
