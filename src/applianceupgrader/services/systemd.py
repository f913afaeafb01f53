"""systemd unit control for applianceupgrader."""

from typing import Callable


class SystemdService:
    """Thin wrapper over ``systemctl`` run through the command runner."""

    def __init__(self, logger):
        self.logger = logger

    def is_active(self, unit: str, run_cmd: Callable) -> bool:
        result = run_cmd(["systemctl", "is-active", unit], check=False, capture_output=True)
        return (result.stdout or "").strip() == "active"

    def start(self, run_cmd: Callable, *units: str):
        self._systemctl("start", units, run_cmd)

    def stop(self, run_cmd: Callable, *units: str):
        self._systemctl("stop", units, run_cmd)

    def restart(self, run_cmd: Callable, *units: str):
        self._systemctl("restart", units, run_cmd)

    def enable(self, run_cmd: Callable, *units: str):
        self._systemctl("enable", units, run_cmd)

    def disable(self, run_cmd: Callable, *units: str):
        self._systemctl("disable", units, run_cmd)

    def _systemctl(self, action: str, units, run_cmd: Callable):
        self.logger.debug("systemctl %s %s", action, " ".join(units))
        run_cmd(["systemctl", action, *units], check=True, capture_output=True)
