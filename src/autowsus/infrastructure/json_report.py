"""
JSON export of a finalized maintenance run.

The document is stable enough for monitoring scripts to parse: enum values
are emitted as their string values and timestamps as ISO 8601.
"""

from __future__ import annotations

import json
import logging
from dataclasses import asdict
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any

from autowsus.domain.models import MaintenanceRun

logger = logging.getLogger(__name__)


def _jsonable(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {key: _jsonable(item) for key, item in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(item) for item in value]
    return value


def run_to_dict(run: MaintenanceRun) -> dict[str, Any]:
    """Flatten a run, including its derived totals, into plain JSON types."""
    data = _jsonable(asdict(run))
    data["declined_total"] = run.declined_total
    data["duration_seconds"] = round(run.duration_seconds, 2)
    return data


def write_json_report(run: MaintenanceRun, output_path: Path) -> Path:
    """Write the run as indented JSON and return the path."""
    output_path = Path(output_path)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    output_path.write_text(json.dumps(run_to_dict(run), indent=2), encoding="utf-8")
    logger.info("JSON report saved: %s", output_path)
    return output_path
