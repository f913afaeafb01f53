"""Host network helpers for applianceupgrader."""

import re
from typing import Callable

from applianceupgrader.errors import PreconditionFailed

_INET_PATTERN = re.compile(r"\binet ([0-9.]+)/")


class HostService:
    """Appliance address detection and firewall rules for the migration window."""

    def __init__(self, logger, interface: str = "eth0"):
        self.logger = logger
        self.interface = interface

    def detect_ip(self, run_cmd: Callable) -> str:
        result = run_cmd(
            ["ip", "-4", "addr", "show", "dev", self.interface],
            check=False,
            capture_output=True,
        )
        match = _INET_PATTERN.search(result.stdout or "") if result.returncode == 0 else None
        if not match:
            raise PreconditionFailed(
                f"Could not determine the appliance IP address on {self.interface}. "
                "Suggested action: pass it with `--appliance-ip`."
            )
        return match.group(1)

    def open_port(self, port: int, run_cmd: Callable):
        self.logger.debug("Opening TCP port %s", port)
        run_cmd(self._rule("-A", port), check=True, capture_output=True)

    def close_port(self, port: int, run_cmd: Callable):
        self.logger.debug("Closing TCP port %s", port)
        run_cmd(self._rule("-D", port), check=True, capture_output=True)

    @staticmethod
    def _rule(action: str, port: int):
        return ["iptables", action, "INPUT", "-p", "tcp", "--dport", str(port), "-j", "ACCEPT"]
