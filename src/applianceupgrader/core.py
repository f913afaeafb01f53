import logging
import os
import subprocess
import time
from dataclasses import replace
from datetime import datetime
from typing import Dict, Iterable, List, Optional

import requests
from rich.console import Console

from .constants import (
    ADMIRAL_PORT,
    ADMIRAL_STARTUP_PATH,
    ADMIRAL_STARTUP_UNIT,
    ADMIRAL_TRANSITIONAL_PORT,
    ADMIRAL_UNIT,
    ADMIRAL_UPGRADE_CONTAINER,
    DOCKER_UNIT,
    HARBOR_STARTUP_PATH,
    HARBOR_STARTUP_UNIT,
    HARBOR_TAB_URL_KEY,
    HARBOR_UNIT,
    TIMESTAMP_FORMAT,
)
from .errors import StateConflict, UpgraderError
from .errors_catalog import actionable_error
from .models import ApplianceLayout, DbCredentials, Phase, UpgradeContext
from .services.appliance_api import ApplianceApiService, read_property
from .services.archive import ArchiveService
from .services.command_runner import CommandRunner
from .services.containers import ContainerRuntimeService
from .services.cross_import import CrossImportCoordinator
from .services.cutover import ServiceCutoverController
from .services.filesystem import FileSystemService
from .services.harbor_config import HarborConfigService
from .services.host import HostService
from .services.migrator import DataMigrationDriver
from .services.operator import ConsoleOperator
from .services.preflight import PreflightChecker
from .services.report import UpgradeReportService
from .services.status_markers import StatusMarkerStore
from .services.systemd import SystemdService
from .services.version_stamp import VersionStampService

console = Console()
logger = logging.getLogger("applianceupgrader")


class ApplianceUpgrader:
    """Drives one upgrade attempt of the Harbor and Admiral appliance."""

    def __init__(
        self,
        db_user: str,
        db_password: str,
        vcenter_target: str,
        vcenter_username: str,
        vcenter_password: str,
        external_psc: str = "",
        psc_domain: str = "",
        appliance_ip: Optional[str] = None,
        root: Optional[str] = None,
        resume: bool = False,
        startup_grace_seconds: float = 3.0,
        operator=None,
    ):
        self.layout = ApplianceLayout.rooted(root)
        self.startup_grace_seconds = startup_grace_seconds
        self.operator = operator or ConsoleOperator()
        self.context = UpgradeContext(
            db_credentials=DbCredentials(user=db_user, password=db_password),
            vcenter_target=vcenter_target,
            vcenter_username=vcenter_username,
            vcenter_password=vcenter_password,
            external_psc=external_psc or "",
            psc_domain=psc_domain or "",
            started_at=datetime.now().astimezone().strftime(TIMESTAMP_FORMAT),
            layout=self.layout,
            appliance_ip=appliance_ip,
            resume=resume,
        )
        self.current_step_name: Optional[str] = None
        self.services_start_disabled = False

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger, console=console)
        self.report_service = UpgradeReportService(
            report_file=self.layout.upgrade_report,
            filesystem_service=self.filesystem_service,
            logger=logger,
        )
        self.archive_service = ArchiveService()
        self.systemd_service = SystemdService(logger=logger)
        self.host_service = HostService(logger=logger)
        self.container_service = ContainerRuntimeService(logger=logger, console=console)
        self.marker_store = StatusMarkerStore(
            layout=self.layout,
            filesystem_service=self.filesystem_service,
            logger=logger,
        )
        self.preflight = PreflightChecker(
            logger=logger,
            marker_store=self.marker_store,
            systemd_service=self.systemd_service,
            container_service=self.container_service,
        )
        self.harbor_config = HarborConfigService(
            cfg_path=self.layout.harbor_cfg,
            filesystem_service=self.filesystem_service,
            logger=logger,
        )
        self.migrator = DataMigrationDriver(
            logger=logger,
            console=console,
            database_dir=self.layout.harbor_database,
        )
        self.cutover_controller = ServiceCutoverController(
            logger=logger,
            console=console,
            container_service=self.container_service,
            filesystem_service=self.filesystem_service,
            archive_service=self.archive_service,
            marker_store=self.marker_store,
            preflight=self.preflight,
        )
        self.cross_import = CrossImportCoordinator(
            logger=logger,
            console=console,
            preflight=self.preflight,
            migrator=self.migrator,
            import_tool=self.layout.admiral_import_tool,
        )
        self.appliance_api = ApplianceApiService(logger=logger, requests_module=requests)
        self.version_stamp_service = VersionStampService(
            filesystem_service=self.filesystem_service,
            logger=logger,
        )

    def _build_report_metadata(self) -> Dict[str, object]:
        return {
            "started_at": self.context.started_at,
            "db_user": self.context.db_credentials.user,
            "vcenter_target": self.context.vcenter_target,
            "external_psc": self.context.external_psc or None,
            "resume": self.context.resume,
        }

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.report_service.step_started(name)
        self.current_step_name = name

        try:
            result = callback(*args, **kwargs)
        except Exception as exc:
            self.report_service.step_finished(name, "failed", error=str(exc))
            raise

        self.report_service.step_finished(name, "success")
        self.current_step_name = None
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        env: Optional[Dict[str, str]] = None,
        redact: Iterable[str] = (),
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(
            cmd,
            check=check,
            capture_output=capture_output,
            env=env,
            redact=redact,
        )

    def _announce(self, message: str, style: str = "blue"):
        console.print(f"[{style}]{message}[/{style}]")
        logger.info(message)

    def _wait_for_startup(self):
        if self.startup_grace_seconds > 0:
            time.sleep(self.startup_grace_seconds)

    def ensure_docker_running(self):
        self.systemd_service.start(self._run_cmd, DOCKER_UNIT)

    def resolve_appliance_ip(self) -> str:
        if not self.context.appliance_ip:
            self.context = replace(self.context, appliance_ip=self.host_service.detect_ip(self._run_cmd))
        logger.info("Appliance IP: %s", self.context.appliance_ip)
        return self.context.appliance_ip

    def _data_migration_interrupted(self) -> bool:
        return self.marker_store.is_done(Phase.ADMIRAL) and not self.marker_store.is_done(Phase.HARBOR)

    def determine_upgrade_path(self) -> bool:
        """Chooses between full data migration and a configuration refresh.

        Admiral 1.2.x writes its PSC auth config into the data disk. Its absence
        means the data comes from a 1.1.x appliance and has to be migrated.
        """
        data_upgrade_needed = not os.path.isfile(self.layout.admiral_auth_config)
        if not data_upgrade_needed and self._data_migration_interrupted():
            # The Admiral cutover already promoted 1.2.x data but Harbor was not migrated.
            self._announce("Detected an interrupted data migration from a previous attempt.", style="yellow")
            data_upgrade_needed = True

        if data_upgrade_needed:
            old_version, new_version = "1.1.x", "1.2.y"
            self._announce(
                f"Detected old appliance version as {old_version}. Upgrade will perform data migration."
            )
        else:
            old_version, new_version = "1.2.x", "1.2.y"
            self._announce(
                f"Detected old appliance version as {old_version}. Upgrade will not perform data migration."
            )

        confirmed = self.operator.confirm(
            f"Do you wish to proceed with a {old_version} to {new_version} upgrade? "
            f"If the version of the old appliance is not {old_version}, answer n"
        )
        if not confirmed:
            raise UpgraderError(actionable_error("upgrade_declined", version=old_version))

        self._announce("Continuing with upgrade")
        self.context = replace(self.context, data_upgrade_needed=data_upgrade_needed)
        self.report_service.set_upgrade_path(data_upgrade_needed)
        return data_upgrade_needed

    def disable_services_start(self):
        self._announce("Disabling and stopping Admiral and Harbor path startup")
        self.systemd_service.stop(self._run_cmd, ADMIRAL_STARTUP_PATH, HARBOR_STARTUP_PATH)
        self.systemd_service.disable(self._run_cmd, ADMIRAL_STARTUP_PATH, HARBOR_STARTUP_PATH)
        self.services_start_disabled = True

    def enable_services_start(self):
        self._announce("Enabling and starting Admiral and Harbor path startup")
        self.systemd_service.enable(self._run_cmd, ADMIRAL_STARTUP_PATH, HARBOR_STARTUP_PATH)
        self.systemd_service.start(self._run_cmd, ADMIRAL_STARTUP_PATH, HARBOR_STARTUP_PATH)

    def register_appliance(self):
        self.appliance_api.register_appliance(
            target=self.context.vcenter_target,
            username=self.context.vcenter_username,
            password=self.context.vcenter_password,
            external_psc=self.context.external_psc,
            psc_domain=self.context.psc_domain,
        )

    def get_psc_tokens(self):
        self.appliance_api.fetch_psc_tokens(self.layout.psc_token_script, self._run_cmd)

    def write_timestamp(self):
        # Lets the Getting Started page skip the credentials prompt.
        self.filesystem_service.write_text_atomic(self.layout.timestamp_file, f"{self.context.started_at}\n")

    def _phase_already_done(self, phase: Phase) -> bool:
        if not self.marker_store.is_done(phase):
            return False
        if self.context.resume:
            self._announce(f"{phase.label} upgrade previously completed, skipping.", style="yellow")
            return True
        if phase is Phase.ADMIRAL and self._data_migration_interrupted():
            # Removing the marker would send the rerun down the config-refresh path.
            raise StateConflict(
                actionable_error("migration_interrupted", path=self.marker_store.path_for(phase))
            )
        self.preflight.check_phase_not_done(phase)
        return False

    def start_admiral(self):
        self._announce("Starting Admiral")
        self.systemd_service.start(self._run_cmd, ADMIRAL_STARTUP_UNIT)
        self._wait_for_startup()

    def start_harbor(self):
        self._announce("Starting Harbor")
        self.systemd_service.start(self._run_cmd, HARBOR_STARTUP_UNIT)

    def upgrade_admiral(self):
        if self._phase_already_done(Phase.ADMIRAL):
            self.start_admiral()
            return

        self._announce("Performing pre-upgrade checks")
        self.preflight.check_file_non_empty(self.layout.admiral_psc_token, label="PSC token")
        self.preflight.check_container_absent(ADMIRAL_UPGRADE_CONTAINER, self._run_cmd)

        self._announce("Starting Admiral upgrade")
        self._announce("[=] Shutting down Harbor and Admiral")
        self.systemd_service.stop(self._run_cmd, HARBOR_UNIT, HARBOR_STARTUP_UNIT)
        self.systemd_service.stop(self._run_cmd, ADMIRAL_UNIT, ADMIRAL_STARTUP_UNIT)
        self.host_service.open_port(ADMIRAL_PORT, self._run_cmd)
        self.host_service.open_port(ADMIRAL_TRANSITIONAL_PORT, self._run_cmd)

        self._announce("[=] Upgrade Admiral")
        self.cutover_controller.run(self.context, self._run_cmd)
        self._announce("Admiral upgrade complete", style="green")
        self.host_service.close_port(ADMIRAL_TRANSITIONAL_PORT, self._run_cmd)

        self.start_admiral()

    def update_admiral_config(self):
        self._announce("Updating Admiral configuration")
        tab_url = read_property(self.layout.admiral_config_properties, HARBOR_TAB_URL_KEY)
        if tab_url is None:
            logger.warning(
                "%s not found in %s, sending an empty value.",
                HARBOR_TAB_URL_KEY,
                self.layout.admiral_config_properties,
            )
            tab_url = ""

        token = self.filesystem_service.read_text(self.layout.admiral_psc_token).strip()
        self.appliance_api.update_admiral_property(
            appliance_ip=self.context.appliance_ip,
            key=HARBOR_TAB_URL_KEY,
            value=tab_url,
            token=token,
        )
        self.systemd_service.restart(self._run_cmd, ADMIRAL_UNIT)

    def upgrade_harbor(self):
        if self._phase_already_done(Phase.HARBOR):
            self.start_harbor()
            return

        layout = self.layout
        workspace = self.context.workspace
        credentials = self.context.db_credentials

        self._announce("Performing pre-upgrade checks")
        self.preflight.check_registry_data(layout.data_mount)
        self.preflight.check_dir_absent(workspace.backup_dir)
        self.preflight.check_dir_absent(workspace.export_dir)
        self.preflight.check_file_non_empty(layout.harbor_psc_token, label="PSC token")

        # Admiral has to be up to receive the project import.
        self.systemd_service.start(self._run_cmd, ADMIRAL_STARTUP_UNIT)

        self._announce("Starting Harbor upgrade")
        self._announce("[=] Shutting down Harbor")
        self.systemd_service.stop(self._run_cmd, HARBOR_STARTUP_UNIT)
        self.systemd_service.stop(self._run_cmd, HARBOR_UNIT)

        self._announce("[=] Migrating Harbor data")
        self.migrator.run_migration(credentials, workspace, self._run_cmd)
        self._announce("[=] Finished migrating Harbor data")

        self._announce("[=] Migrating Harbor configuration")
        self.harbor_config.upgrade_configuration()
        self._announce("[=] Finished migrating Harbor configuration")

        self._announce("[=] Importing project data into Admiral")
        self.cross_import.import_projects(layout.harbor_psc_token, workspace, self._run_cmd)
        self._announce("[=] Finished importing project data into Admiral")

        self._announce("[=] Mapping project data into Harbor")
        self.cross_import.apply_mapping(credentials, workspace, self._run_cmd)
        self._announce("[=] Finished mapping project data into Harbor")

        self.marker_store.mark_done(Phase.HARBOR)
        self._announce("Harbor upgrade complete", style="green")
        self.start_harbor()

    def set_data_version(self):
        previous, new = self.version_stamp_service.stamp(
            self.layout.appliance_version,
            self.layout.data_version,
        )
        self.report_service.set_versions(previous=previous, new=new)

    def run(self) -> int:
        exit_code = 1
        report_status = "failed"
        report_error: Optional[str] = None

        try:
            self._announce(f"Starting upgrade {self.context.started_at}")
            self.report_service.start_run(metadata=self._build_report_metadata())

            self._run_step("start_docker", self.ensure_docker_running)
            self._run_step("resolve_appliance_ip", self.resolve_appliance_ip)
            data_upgrade_needed = self._run_step("determine_upgrade_path", self.determine_upgrade_path)

            self._announce("Preparing upgrade environment")
            self._run_step("disable_services_start", self.disable_services_start)
            self._run_step("register_appliance", self.register_appliance)
            self._run_step("get_psc_tokens", self.get_psc_tokens)
            self._run_step("write_timestamp", self.write_timestamp)
            self._announce("Finished preparing upgrade environment")

            if data_upgrade_needed:
                self._run_step("upgrade_admiral", self.upgrade_admiral)
            else:
                self._run_step("start_admiral", self.start_admiral)

            self._run_step("update_admiral_config", self.update_admiral_config)

            if data_upgrade_needed:
                self._run_step("upgrade_harbor", self.upgrade_harbor)
            else:
                self._run_step("start_harbor", self.start_harbor)

            self._run_step("set_data_version", self.set_data_version)
            self._run_step("enable_services_start", self.enable_services_start)

            self._announce("Upgrade script complete.", style="bold green")
            report_status = "success"
            report_error = None
            exit_code = 0
            return exit_code

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            report_status = "aborted"
            report_error = "Operation cancelled by user."
            return exit_code
        except UpgraderError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("Step '%s' failed: %s", self.current_step_name or "run", exc)
            report_error = str(exc)
            return exit_code
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            report_error = str(exc)
            return exit_code
        finally:
            self.report_service.finalize(report_status, error=report_error)
            if report_status != "success" and self.services_start_disabled:
                logger.warning(
                    "Service auto-start was left disabled. Resolve the error above and rerun "
                    "the upgrade, adding --resume to skip phases that already completed."
                )
