"""Harbor database migrator driver for applianceupgrader."""

import os
from typing import Callable, Dict, List, Optional, Tuple

from applianceupgrader.constants import DIR_MODE, MIGRATOR_IMAGE
from applianceupgrader.errors import (
    BackupFailed,
    ExportFailed,
    InvalidCredentials,
    MappingFailed,
    SchemaMigrationFailed,
    StateConflict,
    UpgraderError,
)
from applianceupgrader.errors_catalog import actionable_error
from applianceupgrader.models import DbCredentials, MigrationWorkspace

CONTAINER_DATABASE_DIR = "/var/lib/mysql"
CONTAINER_BACKUP_DIR = "/harbor-migration/backup"
CONTAINER_MIGRATION_DIR = "/harbor_migration"


class DataMigrationDriver:
    """Runs the migrator container through test, backup, up head and export.

    Every step is a separate ``docker run --rm`` against the Harbor database
    volume. Credentials reach the container as environment variables inherited
    by name so they never show up on a command line.
    """

    def __init__(self, logger, console, database_dir: str, image: str = MIGRATOR_IMAGE):
        self.logger = logger
        self.console = console
        self.database_dir = database_dir
        self.image = image

    def build_command(
        self,
        subcommand: List[str],
        volumes: Optional[List[Tuple[str, str]]] = None,
        environment: Optional[Dict[str, str]] = None,
    ) -> List[str]:
        cmd = ["docker", "run", "--rm", "-e", "DB_USR", "-e", "DB_PWD"]
        for key, value in (environment or {}).items():
            cmd += ["-e", f"{key}={value}"]
        for source, target in [(self.database_dir, CONTAINER_DATABASE_DIR)] + list(volumes or []):
            cmd += ["-v", f"{source}:{target}"]
        cmd.append(self.image)
        cmd += subcommand
        return cmd

    def _migrator(
        self,
        credentials: DbCredentials,
        run_cmd: Callable,
        subcommand: List[str],
        volumes: Optional[List[Tuple[str, str]]] = None,
        environment: Optional[Dict[str, str]] = None,
    ):
        self.logger.info("Running Harbor migrator: %s", " ".join(subcommand))
        return run_cmd(
            self.build_command(subcommand, volumes=volumes, environment=environment),
            check=False,
            capture_output=True,
            env=credentials.as_env(),
            redact=(credentials.password,),
        )

    def ensure_workspace_absent(self, workspace: MigrationWorkspace):
        for path in (workspace.backup_dir, workspace.export_dir):
            if os.path.exists(path):
                raise StateConflict(actionable_error("dir_exists", path=path))

    def create_workspace(self, workspace: MigrationWorkspace):
        self.ensure_workspace_absent(workspace)
        try:
            os.mkdir(workspace.backup_dir, DIR_MODE)
            os.mkdir(workspace.export_dir, DIR_MODE)
        except FileExistsError as exc:
            raise StateConflict(actionable_error("dir_exists", path=exc.filename)) from exc
        except OSError as exc:
            raise UpgraderError(f"Could not create migration workspace: {exc}") from exc

    def test_credentials(self, credentials: DbCredentials, run_cmd: Callable):
        result = self._migrator(credentials, run_cmd, ["test"])
        if result.returncode != 0:
            raise InvalidCredentials(actionable_error("invalid_credentials"))

    def run_migration(
        self,
        credentials: DbCredentials,
        workspace: MigrationWorkspace,
        run_cmd: Callable,
    ) -> str:
        """Backs up, upgrades and exports the Harbor database.

        Returns the path of the exported projects file.
        """
        self.ensure_workspace_absent(workspace)
        self.test_credentials(credentials, run_cmd)
        self.create_workspace(workspace)

        result = self._migrator(
            credentials,
            run_cmd,
            ["backup"],
            volumes=[(workspace.backup_dir, CONTAINER_BACKUP_DIR)],
        )
        if result.returncode != 0:
            raise BackupFailed(self._step_failed("backup", workspace))

        result = self._migrator(
            credentials,
            run_cmd,
            ["up", "head"],
            environment={"SKIP_CONFIRM": "y"},
        )
        if result.returncode != 0:
            raise SchemaMigrationFailed(self._step_failed("up head", workspace))

        # Overwrites harbor_projects.json from any earlier export.
        result = self._migrator(
            credentials,
            run_cmd,
            ["export"],
            volumes=[(workspace.export_dir, CONTAINER_MIGRATION_DIR)],
            environment={"EXPORTPATH": CONTAINER_MIGRATION_DIR},
        )
        if result.returncode != 0:
            raise ExportFailed(self._step_failed("export", workspace))

        return workspace.projects_file

    def map_projects(self, credentials: DbCredentials, workspace: MigrationWorkspace, run_cmd: Callable):
        mapping_name = os.path.basename(workspace.mapping_file)
        result = self._migrator(
            credentials,
            run_cmd,
            ["mapprojects"],
            volumes=[(workspace.export_dir, CONTAINER_MIGRATION_DIR)],
            environment={"MAPPROJECTFILE": f"{CONTAINER_MIGRATION_DIR}/{mapping_name}"},
        )
        if result.returncode != 0:
            raise MappingFailed(actionable_error("mapping_failed", mapping_file=workspace.mapping_file))

    @staticmethod
    def _step_failed(step: str, workspace: MigrationWorkspace) -> str:
        return actionable_error("migrator_step_failed", step=step, backup_dir=workspace.backup_dir)
