"""Data disk version stamp."""

import os
from typing import Optional, Tuple

from applianceupgrader.errors import PreconditionFailed


class VersionStampService:
    def __init__(self, filesystem_service, logger):
        self.filesystem_service = filesystem_service
        self.logger = logger

    def read(self, path: str) -> Optional[str]:
        if not os.path.exists(path):
            return None
        return self.filesystem_service.read_text(path).strip()

    def stamp(self, appliance_version: str, data_version: str) -> Tuple[Optional[str], str]:
        """Copies the appliance version over the data disk version.

        Returns the previous and the new data disk version.
        """
        if not os.path.isfile(appliance_version):
            raise PreconditionFailed(f"Appliance version file {appliance_version} not present.")

        previous = self.read(data_version)
        if previous is not None:
            self.logger.info("Old data version: %s", previous)

        content = self.filesystem_service.read_text(appliance_version)
        self.filesystem_service.write_text_atomic(data_version, content)
        new = content.strip()
        self.logger.info("Set new data version: %s", new)
        return previous, new
