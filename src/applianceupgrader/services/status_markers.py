"""Phase completion markers for checkpoint/resume support."""

import os
from datetime import datetime, timezone

from applianceupgrader.models import ApplianceLayout, Phase


class StatusMarkerStore:
    """Durable, file-existence based completion markers.

    Markers are only ever written here. Removing one is an operator action.
    """

    def __init__(self, layout: ApplianceLayout, filesystem_service, logger):
        self.layout = layout
        self.filesystem_service = filesystem_service
        self.logger = logger

    def path_for(self, phase: Phase) -> str:
        return self.layout.marker_path(phase)

    def is_done(self, phase: Phase) -> bool:
        return os.path.exists(self.path_for(phase))

    def mark_done(self, phase: Phase):
        path = self.path_for(phase)
        self.filesystem_service.write_text_atomic(path, f"{self._now()}\n")
        self.logger.info("%s upgrade marked complete at %s", phase.label, path)

    @staticmethod
    def _now() -> str:
        return datetime.now(timezone.utc).isoformat()
