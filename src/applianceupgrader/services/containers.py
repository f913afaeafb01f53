"""Docker container lifecycle helpers for applianceupgrader."""

from typing import Callable, List

from applianceupgrader.errors import UpgraderError
from applianceupgrader.models import ContainerSpec


class ContainerRuntimeService:
    """Creates, starts, stops and removes the Admiral containers."""

    LOG_OPTIONS = ("--log-driver=json-file", "--log-opt", "max-size=1g", "--log-opt", "max-file=10")

    def __init__(self, logger, console):
        self.logger = logger
        self.console = console

    def build_create_command(self, spec: ContainerSpec) -> List[str]:
        cmd = ["docker", "create"]
        for host_port, container_port in spec.ports:
            cmd += ["-p", f"{host_port}:{container_port}"]
        cmd += ["--name", spec.name]
        for source, target in spec.volumes:
            cmd += ["-v", f"{source}:{target}"]
        for key, value in spec.environment.items():
            cmd += ["-e", f"{key}={value}"]
        cmd += list(self.LOG_OPTIONS)
        cmd.append(spec.image)
        return cmd

    def create_and_start(self, spec: ContainerSpec, run_cmd: Callable):
        self.logger.info("Starting container %s (%s)", spec.name, spec.image)
        run_cmd(self.build_create_command(spec), check=True, capture_output=True)
        run_cmd(["docker", "start", spec.name], check=True, capture_output=True)

    def stop(self, name: str, run_cmd: Callable):
        self.logger.info("Stopping container %s", name)
        run_cmd(["docker", "stop", name], check=True, capture_output=True)

    def remove(self, name: str, run_cmd: Callable):
        run_cmd(["docker", "rm", "-f", name], check=True, capture_output=True)

    def is_running(self, name: str, run_cmd: Callable) -> bool:
        result = run_cmd(["docker", "ps", "-q", "-f", f"name={name}"], check=False, capture_output=True)
        if result.returncode != 0:
            raise UpgraderError(
                f"Could not query Docker for container {name}. Check that docker.service is running."
            )
        return bool((result.stdout or "").strip())
