"""Pre-upgrade checks for applianceupgrader."""

import os
from typing import Callable

from applianceupgrader.constants import HARBOR_DATA_DIRS
from applianceupgrader.errors import PreconditionFailed, StateConflict
from applianceupgrader.errors_catalog import actionable_error
from applianceupgrader.models import Phase


class PreflightChecker:
    """Validates preconditions before any mutating step runs.

    Every check raises on failure with the remediation the operator has to
    perform by hand. Nothing is cleaned up automatically.
    """

    def __init__(self, logger, marker_store, systemd_service, container_service):
        self.logger = logger
        self.marker_store = marker_store
        self.systemd_service = systemd_service
        self.container_service = container_service

    def check_dir_absent(self, path: str):
        if os.path.isdir(path):
            raise StateConflict(actionable_error("dir_exists", path=path))

    def check_file_absent(self, path: str, label: str = "File"):
        if os.path.exists(path):
            raise StateConflict(actionable_error("file_exists", label=label, path=path))

    def check_file_non_empty(self, path: str, label: str = "File"):
        if not os.path.isfile(path):
            raise PreconditionFailed(actionable_error("file_missing", label=label, path=path))
        if os.path.getsize(path) == 0:
            raise PreconditionFailed(actionable_error("file_empty", label=label, path=path))

    def check_service_active(self, unit: str, run_cmd: Callable):
        if not self.systemd_service.is_active(unit, run_cmd):
            raise PreconditionFailed(actionable_error("service_inactive", unit=unit))

    def check_phase_not_done(self, phase: Phase):
        if self.marker_store.is_done(phase):
            raise StateConflict(
                actionable_error(
                    "phase_done",
                    label=phase.label,
                    path=self.marker_store.path_for(phase),
                )
            )

    def check_registry_data(self, data_mount: str):
        for name in HARBOR_DATA_DIRS:
            if not os.path.isdir(os.path.join(data_mount, name)):
                raise PreconditionFailed(
                    actionable_error(
                        "registry_data_missing",
                        path=data_mount,
                        missing=os.path.join(data_mount, name),
                    )
                )

    def check_container_absent(self, name: str, run_cmd: Callable):
        if self.container_service.is_running(name, run_cmd):
            raise StateConflict(actionable_error("container_exists", name=name))
