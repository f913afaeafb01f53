"""Upgrade run report."""

import json
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from applianceupgrader.errors import UpgraderError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


@dataclass
class StepRecord:
    name: str
    started_at: str
    status: str = "running"
    finished_at: Optional[str] = None
    duration_seconds: Optional[float] = None
    error: Optional[str] = None

    def close(self, status: str, error: Optional[str] = None):
        finished = _utc_now()
        self.status = status
        self.error = error
        self.finished_at = finished.isoformat()
        self.duration_seconds = (finished - datetime.fromisoformat(self.started_at)).total_seconds()


class UpgradeReportService:
    """Keeps a JSON report of one upgrade attempt next to the upgrade log.

    The file is rewritten after every change so that it reflects the last
    completed step even if the process dies. Failing to write it is logged and
    never stops the upgrade.
    """

    def __init__(self, report_file: str, filesystem_service, logger):
        self.report_file = report_file
        self.filesystem_service = filesystem_service
        self.logger = logger
        self.status = "running"
        self.started_at: Optional[datetime] = None
        self.finished_at: Optional[datetime] = None
        self.upgrade_path: Optional[str] = None
        self.metadata: Dict[str, Any] = {}
        self.versions: Dict[str, Optional[str]] = {"previous": None, "new": None}
        self.steps: List[StepRecord] = []
        self.error: Optional[str] = None

    def start_run(self, metadata: Dict[str, Any]):
        self.started_at = _utc_now()
        self.metadata = dict(metadata)
        self.write()

    def set_upgrade_path(self, data_upgrade_needed: bool):
        self.upgrade_path = "data_migration" if data_upgrade_needed else "config_refresh"
        self.write()

    def set_versions(self, previous: Optional[str], new: Optional[str]):
        self.versions = {"previous": previous, "new": new}
        self.write()

    def step_started(self, step_name: str):
        self.steps.append(StepRecord(name=step_name, started_at=_utc_now().isoformat()))
        self.write()

    def step_finished(self, step_name: str, status: str, error: Optional[str] = None):
        step = self._running_step(step_name)
        if step is not None:
            step.close(status, error)
        self.write()

    def finalize(self, status: str, error: Optional[str] = None):
        self.status = status
        self.error = error
        self.finished_at = _utc_now()
        self.write()

    def as_dict(self) -> Dict[str, Any]:
        duration = None
        if self.started_at and self.finished_at:
            duration = (self.finished_at - self.started_at).total_seconds()
        return {
            "status": self.status,
            "started_at": _isoformat(self.started_at),
            "finished_at": _isoformat(self.finished_at),
            "duration_seconds": duration,
            "upgrade_path": self.upgrade_path,
            "metadata": self.metadata,
            "versions": self.versions,
            "steps": [asdict(step) for step in self.steps],
            "error": self.error,
        }

    def write(self):
        content = json.dumps(self.as_dict(), indent=2, sort_keys=True) + "\n"
        try:
            self.filesystem_service.write_text_atomic(self.report_file, content)
        except UpgraderError as exc:
            self.logger.warning("Could not write report file '%s': %s", self.report_file, exc)

    def _running_step(self, step_name: str) -> Optional[StepRecord]:
        for step in reversed(self.steps):
            if step.name == step_name and step.status == "running":
                return step
        return None
