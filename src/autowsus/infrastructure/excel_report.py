"""
Excel report generation using openpyxl.

One workbook per maintenance run with three sheets:
- Summary: run totals, artifacts and overall result
- Phases: one row per pipeline phase with status and duration
- Issues: errors first, then warnings
"""

from __future__ import annotations

import logging
from datetime import datetime
from pathlib import Path
from typing import Any

from openpyxl import Workbook
from openpyxl.styles import Alignment, Border, Font, PatternFill, Side
from openpyxl.utils import get_column_letter

from autowsus.domain.models import MaintenanceRun, PhaseStatus

logger = logging.getLogger(__name__)

# Styling constants
HEADER_FONT = Font(bold=True, color="FFFFFF")
HEADER_FILL = PatternFill(start_color="4472C4", end_color="4472C4", fill_type="solid")
HEADER_ALIGNMENT = Alignment(horizontal="center", vertical="center", wrap_text=True)
THIN_BORDER = Border(
    left=Side(style="thin"),
    right=Side(style="thin"),
    top=Side(style="thin"),
    bottom=Side(style="thin"),
)

STATUS_FILLS = {
    PhaseStatus.COMPLETED: PatternFill(start_color="C6EFCE", end_color="C6EFCE", fill_type="solid"),
    PhaseStatus.FAILED: PatternFill(start_color="FFC7CE", end_color="FFC7CE", fill_type="solid"),
    PhaseStatus.SKIPPED: PatternFill(start_color="EDEDED", end_color="EDEDED", fill_type="solid"),
}
ERROR_FONT = Font(bold=True, color="9C0006")
WARNING_FONT = Font(color="9C5700")


def _write_header(ws, columns: list[tuple[str, int]]) -> None:
    for col_idx, (col_name, width) in enumerate(columns, start=1):
        cell = ws.cell(row=1, column=col_idx, value=col_name)
        cell.font = HEADER_FONT
        cell.fill = HEADER_FILL
        cell.alignment = HEADER_ALIGNMENT
        cell.border = THIN_BORDER
        ws.column_dimensions[get_column_letter(col_idx)].width = width
    ws.freeze_panes = "A2"


def _summary_rows(run: MaintenanceRun) -> list[tuple[str, Any]]:
    rows: list[tuple[str, Any]] = [
        ("Result", "Success" if run.success else "Failed"),
        ("Started", run.start_time.isoformat()),
        ("Finished", run.end_time.isoformat() if run.end_time else ""),
        ("Duration (s)", round(run.duration_seconds, 1)),
        ("Declined (expired)", run.declined_expired),
        ("Declined (superseded)", run.declined_superseded),
        ("Declined (old)", run.declined_old),
        ("Declined (total)", run.declined_total),
        ("Approved", run.approved),
        ("Database size (GB)", run.database_size_gb),
        ("Backup file", run.backup.file_path if run.backup else ""),
        ("Backup size (MB)", run.backup.size_mb if run.backup else ""),
        ("Export root", run.export.root_path if run.export else ""),
        ("Export archive", run.export.archive_path if run.export else ""),
        ("Exported files", run.export.file_count if run.export else ""),
        ("Export size (GB)", run.export.size_gb if run.export else ""),
        ("Warnings", len(run.warnings)),
        ("Errors", len(run.errors)),
        ("Report Generated", datetime.now().isoformat(timespec="seconds")),
    ]
    return rows


def write_run_report(run: MaintenanceRun, output_path: Path) -> Path:
    """
    Write a maintenance run to an Excel workbook.

    Args:
        run: Finalized maintenance run
        output_path: Path to write the .xlsx file

    Returns:
        Path to the created Excel file
    """
    output_path = Path(output_path)
    logger.info("Generating maintenance report: %s", output_path)

    wb = Workbook()
    if "Sheet" in wb.sheetnames:
        del wb["Sheet"]

    summary = wb.create_sheet("Summary")
    for row_idx, (label, value) in enumerate(_summary_rows(run), start=1):
        summary.cell(row=row_idx, column=1, value=label).font = Font(bold=True)
        summary.cell(row=row_idx, column=2, value=value)
    summary.column_dimensions["A"].width = 24
    summary.column_dimensions["B"].width = 60
    if not run.success:
        summary["B1"].font = ERROR_FONT

    phases = wb.create_sheet("Phases")
    _write_header(phases, [("Phase", 20), ("Status", 14), ("Duration (s)", 14)])
    for row_idx, phase in enumerate(run.phases, start=2):
        values = [phase.name.value, phase.status.value, phase.duration_seconds]
        for col_idx, value in enumerate(values, start=1):
            cell = phases.cell(row=row_idx, column=col_idx, value=value)
            cell.border = THIN_BORDER
        phases.cell(row=row_idx, column=2).fill = STATUS_FILLS[phase.status]

    issues = wb.create_sheet("Issues")
    _write_header(issues, [("Severity", 12), ("Message", 100)])
    entries = [("Error", message) for message in run.errors] + [("Warning", message) for message in run.warnings]
    for row_idx, (severity, message) in enumerate(entries, start=2):
        severity_cell = issues.cell(row=row_idx, column=1, value=severity)
        severity_cell.font = ERROR_FONT if severity == "Error" else WARNING_FONT
        severity_cell.border = THIN_BORDER
        message_cell = issues.cell(row=row_idx, column=2, value=message)
        message_cell.border = THIN_BORDER
        message_cell.alignment = Alignment(wrap_text=True, vertical="top")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    wb.save(output_path)
    logger.info("Maintenance report saved: %s (%d phases, %d issues)", output_path, len(run.phases), len(entries))
    return output_path
