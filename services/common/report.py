"""
JSON run reports.

Every CLI run can be saved as a JSON report in a configured directory, named
with its timestamp and job: ``YYYY-MM-DD_HHMMSS_<job>.json``.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional


@dataclass
class RunReport:
    """Outcome of one job invocation."""
    job: str
    timestamp: datetime
    status: str  # "ok", "partial", "error"
    result: Optional[Dict[str, Any]] = None
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Convert report to dictionary for JSON serialization."""
        return {
            "job": self.job,
            "timestamp": self.timestamp.isoformat(),
            "status": self.status,
            "result": self.result,
            "errors": self.errors,
        }

    def to_json(self, indent: int = 2) -> str:
        """Convert report to JSON string."""
        return json.dumps(self.to_dict(), indent=indent, ensure_ascii=False, default=str)


def create_report(
    job: str,
    result: Optional[Dict[str, Any]] = None,
    errors: Optional[List[str]] = None,
    record_errors: int = 0,
) -> RunReport:
    """
    Create a run report.

    Args:
        job: Job name, used in the file name
        result: JSON-ready result payload of the job
        errors: Errors that aborted the run
        record_errors: Number of records that ended in error

    Returns:
        RunReport with status "error" when the run aborted, "partial" when
        some records failed and "ok" otherwise
    """
    all_errors = list(errors or [])

    if all_errors:
        status = "error"
    elif record_errors:
        status = "partial"
    else:
        status = "ok"

    return RunReport(
        job=job,
        timestamp=datetime.now(timezone.utc),
        status=status,
        result=result,
        errors=all_errors,
    )


def save_report(report: RunReport, reports_dir: Path) -> Path:
    """
    Save report to JSON file.

    Returns:
        Path to saved report file
    """
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)

    timestamp_str = report.timestamp.strftime("%Y-%m-%d_%H%M%S")
    filepath = reports_dir / f"{timestamp_str}_{report.job}.json"

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(report.to_json())

    return filepath


def load_report(filepath: Path) -> RunReport:
    """Load a report previously written by ``save_report``."""
    with open(filepath, "r", encoding="utf-8") as f:
        data = json.load(f)

    return RunReport(
        job=data["job"],
        timestamp=datetime.fromisoformat(data["timestamp"]),
        status=data["status"],
        result=data.get("result"),
        errors=data.get("errors", []),
    )
