"""Admiral side-by-side migration and cutover."""

import os
from enum import Enum
from typing import Callable, List

from applianceupgrader.constants import (
    ADMIRAL_ARCHIVE_NAME,
    ADMIRAL_CONTAINER,
    ADMIRAL_IMAGE,
    ADMIRAL_LEGACY_IMAGE,
    ADMIRAL_PORT,
    ADMIRAL_TRANSITIONAL_PORT,
    ADMIRAL_UPGRADE_CONTAINER,
)
from applianceupgrader.errors import InstanceMigrationFailed, UpgraderError
from applianceupgrader.errors_catalog import actionable_error
from applianceupgrader.models import ContainerSpec, Phase, ServiceInstance, UpgradeContext

TRUSTSTORE_PASSWORD = "changeit"
CONTAINER_PSC_DIR = "/etc/vmware/psc/admiral"


class CutoverState(str, Enum):
    IDLE = "idle"
    TRANSITIONAL_STARTING = "transitional_instance_starting"
    DATA_MIGRATING = "data_migrating"
    CUTOVER_IN_PROGRESS = "cutover_in_progress"
    COMPLETE = "complete"
    FAILED = "failed"


TERMINAL_STATES = (CutoverState.COMPLETE, CutoverState.FAILED)


class ServiceCutoverController:
    """Moves Admiral data from the legacy instance into a new one, then swaps.

    The legacy image runs on the transitional port against the old data
    directory while the current image runs on the service port against a
    fresh data directory. After the external migration finishes, the old data
    is archived, removed and replaced by the new directory. A crash between
    removal and promotion leaves no canonical data directory.
    """

    def __init__(
        self,
        logger,
        console,
        container_service,
        filesystem_service,
        archive_service,
        marker_store,
        preflight,
    ):
        self.logger = logger
        self.console = console
        self.container_service = container_service
        self.filesystem_service = filesystem_service
        self.archive_service = archive_service
        self.marker_store = marker_store
        self.preflight = preflight
        self.state = CutoverState.IDLE
        self.history: List[CutoverState] = [CutoverState.IDLE]

    def legacy_instance(self, context: UpgradeContext) -> ServiceInstance:
        return ServiceInstance(
            name=ADMIRAL_UPGRADE_CONTAINER,
            image=ADMIRAL_LEGACY_IMAGE,
            host_port=ADMIRAL_TRANSITIONAL_PORT,
            data_dir=context.layout.admiral_data,
        )

    def current_instance(self, context: UpgradeContext) -> ServiceInstance:
        return ServiceInstance(
            name=ADMIRAL_CONTAINER,
            image=ADMIRAL_IMAGE,
            host_port=ADMIRAL_PORT,
            data_dir=context.layout.admiral_new_data,
        )

    def run(self, context: UpgradeContext, run_cmd: Callable):
        if self.state is not CutoverState.IDLE:
            raise UpgraderError(f"Admiral cutover cannot start from state '{self.state.value}'.")

        try:
            self.check_entry(context)

            self._transition(CutoverState.TRANSITIONAL_STARTING)
            self.start_instances(context, run_cmd)

            self._transition(CutoverState.DATA_MIGRATING)
            self.migrate_data(context, run_cmd)

            self._transition(CutoverState.CUTOVER_IN_PROGRESS)
            self.cut_over(context, run_cmd)

            self.marker_store.mark_done(Phase.ADMIRAL)
            self._transition(CutoverState.COMPLETE)
        except Exception:
            self._transition(CutoverState.FAILED)
            raise

    def check_entry(self, context: UpgradeContext):
        self.preflight.check_dir_absent(context.layout.admiral_new_data)
        self.preflight.check_file_absent(context.layout.admiral_backup, label="Admiral upgrade backup")

    def build_legacy_spec(self, context: UpgradeContext) -> ContainerSpec:
        old_data = context.layout.admiral_data
        cert_dir = os.path.join(old_data, "cert")
        return ContainerSpec(
            name=ADMIRAL_UPGRADE_CONTAINER,
            image=ADMIRAL_LEGACY_IMAGE,
            ports=[(ADMIRAL_TRANSITIONAL_PORT, ADMIRAL_PORT)],
            volumes=[
                (os.path.join(cert_dir, "server.crt"), "/tmp/server.crt"),
                (os.path.join(cert_dir, "server.key"), "/tmp/server.key"),
                (os.path.join(cert_dir, "trustedcertificates.jks"), "/tmp/trusted_certificates.jks"),
                (os.path.join(old_data, "custom.conf"), "/admiral/config/configuration.properties"),
                (old_data, "/var/admiral"),
            ],
            environment={
                "ADMIRAL_PORT": str(ADMIRAL_PORT),
                "JAVA_OPTS": (
                    "-Ddcp.net.ssl.trustStore=/tmp/trusted_certificates.jks "
                    f"-Ddcp.net.ssl.trustStorePassword={TRUSTSTORE_PASSWORD}"
                ),
                "XENON_OPTS": (
                    f"--port=-1 --securePort={ADMIRAL_PORT} "
                    "--certificateFile=/tmp/server.crt --keyFile=/tmp/server.key"
                ),
            },
        )

    def build_current_spec(self, context: UpgradeContext) -> ContainerSpec:
        new_data = context.layout.admiral_new_data
        public_address = self.current_instance(context).address(context.appliance_ip)
        xenon_opts = " ".join(
            [
                f"--publicUri=https://{public_address}/",
                "--bindAddress=0.0.0.0",
                "--port=-1",
                "--authConfig=/configs/psc-config.properties",
                f"--securePort={ADMIRAL_PORT}",
                "--keyFile=/configs/server.key",
                "--certificateFile=/configs/server.crt",
                "--startMockHostAdapterInstance=false",
            ]
        )
        return ContainerSpec(
            name=ADMIRAL_CONTAINER,
            image=ADMIRAL_IMAGE,
            ports=[(ADMIRAL_PORT, ADMIRAL_PORT)],
            volumes=[
                (os.path.join(new_data, "configs"), "/configs"),
                (new_data, "/var/admiral"),
                (context.layout.admiral_psc_dir, CONTAINER_PSC_DIR),
            ],
            environment={
                "ADMIRAL_PORT": "-1",
                "JAVA_OPTS": (
                    "-Ddcp.net.ssl.trustStore=/configs/trustedcertificates.jks "
                    f"-Ddcp.net.ssl.trustStorePassword={TRUSTSTORE_PASSWORD}"
                ),
                "CONFIG_FILE_PATH": "/configs/config.properties",
                "XENON_OPTS": xenon_opts,
            },
        )

    def start_instances(self, context: UpgradeContext, run_cmd: Callable):
        layout = context.layout
        new_configs = os.path.join(layout.admiral_new_data, "configs")
        try:
            os.makedirs(new_configs)
        except OSError as exc:
            raise UpgraderError(f"Could not create {new_configs}: {exc}") from exc

        self.filesystem_service.copy_dir_contents(os.path.join(layout.admiral_data, "cert"), new_configs)
        self.container_service.create_and_start(self.build_legacy_spec(context), run_cmd)

        self.filesystem_service.copy_file(layout.admiral_psc_config, new_configs)
        self.container_service.create_and_start(self.build_current_spec(context), run_cmd)

    def migrate_data(self, context: UpgradeContext, run_cmd: Callable):
        token = self.filesystem_service.read_text(context.layout.admiral_psc_token).strip()
        old_address = self.legacy_instance(context).address(context.appliance_ip)
        new_address = self.current_instance(context).address(context.appliance_ip)

        self.logger.info("Migrating Admiral data from %s to %s", old_address, new_address)
        result = run_cmd(
            [context.layout.admiral_migrate_script, old_address, new_address, token],
            check=False,
            capture_output=True,
            redact=(token,),
        )
        if result.returncode != 0:
            raise InstanceMigrationFailed(
                actionable_error("instance_migration_failed", name=ADMIRAL_CONTAINER)
            )
        self.console.print("[green]Admiral migration complete[/green]")
        self.logger.info("Admiral migration complete")

    def cut_over(self, context: UpgradeContext, run_cmd: Callable):
        layout = context.layout
        self.container_service.stop(ADMIRAL_UPGRADE_CONTAINER, run_cmd)
        self.container_service.stop(ADMIRAL_CONTAINER, run_cmd)

        self.console.print("[blue]Archiving previous Admiral data[/blue]")
        self.logger.info("Archiving %s to %s", layout.admiral_data, layout.admiral_backup)
        self.archive_service.create_tarball(
            layout.admiral_data, layout.admiral_backup, arcname=ADMIRAL_ARCHIVE_NAME
        )

        self.filesystem_service.remove_dir(layout.admiral_data)
        self.filesystem_service.promote_dir(layout.admiral_new_data, layout.admiral_data)

        self.logger.info("Cleaning up")
        self.container_service.remove(ADMIRAL_UPGRADE_CONTAINER, run_cmd)

    def _transition(self, new_state: CutoverState):
        if self.state in TERMINAL_STATES:
            raise UpgraderError(
                f"Invalid cutover transition from '{self.state.value}' to '{new_state.value}'."
            )
        self.logger.debug("Admiral cutover: %s -> %s", self.state.value, new_state.value)
        self.state = new_state
        self.history.append(new_state)
