"""Harbor project import into Admiral and id mapping back into Harbor."""

from typing import Callable

from applianceupgrader.constants import ADMIRAL_LOCAL_ENDPOINT, ADMIRAL_UNIT
from applianceupgrader.errors import ImportFailed
from applianceupgrader.errors_catalog import actionable_error
from applianceupgrader.models import DbCredentials, MigrationWorkspace


class CrossImportCoordinator:
    """Imports exported Harbor projects into Admiral, then maps the new ids back.

    Admiral must be active right before each step. The check is repeated
    instead of trusting an earlier phase.
    """

    def __init__(self, logger, console, preflight, migrator, import_tool: str):
        self.logger = logger
        self.console = console
        self.preflight = preflight
        self.migrator = migrator
        self.import_tool = import_tool

    def import_projects(
        self,
        token_file: str,
        workspace: MigrationWorkspace,
        run_cmd: Callable,
    ) -> str:
        self.preflight.check_service_active(ADMIRAL_UNIT, run_cmd)
        self.preflight.check_file_non_empty(token_file, label="PSC token")

        self.logger.info("Importing %s into Admiral", workspace.projects_file)
        result = run_cmd(
            [
                self.import_tool,
                "--admiralendpoint",
                ADMIRAL_LOCAL_ENDPOINT,
                "--tokenfile",
                token_file,
                "--projectsfile",
                workspace.projects_file,
                "--mapprojectsfile",
                workspace.mapping_file,
            ],
            check=False,
            capture_output=True,
        )
        if result.returncode != 0:
            raise ImportFailed(actionable_error("import_failed", token_file=token_file))
        return workspace.mapping_file

    def apply_mapping(
        self,
        credentials: DbCredentials,
        workspace: MigrationWorkspace,
        run_cmd: Callable,
    ):
        self.preflight.check_service_active(ADMIRAL_UNIT, run_cmd)
        self.logger.info("Mapping project data from %s into Harbor", workspace.mapping_file)
        self.migrator.map_projects(credentials, workspace, run_cmd)
