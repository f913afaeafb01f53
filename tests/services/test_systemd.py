import subprocess

import pytest

from applianceupgrader.errors import UpgraderError
from applianceupgrader.services.systemd import SystemdService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


def test_systemctl_actions_pass_all_units():
    calls = []

    def run_cmd(cmd, **kwargs):
        calls.append(cmd)
        return subprocess.CompletedProcess(cmd, 0, stdout="", stderr="")

    service = SystemdService(logger=DummyLogger())
    service.stop(run_cmd, "admiral_startup.path", "harbor_startup.path")
    service.disable(run_cmd, "admiral_startup.path", "harbor_startup.path")
    service.restart(run_cmd, "admiral.service")

    assert calls == [
        ["systemctl", "stop", "admiral_startup.path", "harbor_startup.path"],
        ["systemctl", "disable", "admiral_startup.path", "harbor_startup.path"],
        ["systemctl", "restart", "admiral.service"],
    ]


def test_systemctl_failure_propagates():
    def run_cmd(cmd, check=True, **_kwargs):
        assert check is True
        raise UpgraderError("Command failed (1): systemctl start docker.service")

    with pytest.raises(UpgraderError, match="docker.service"):
        SystemdService(logger=DummyLogger()).start(run_cmd, "docker.service")


@pytest.mark.parametrize("stdout, expected", [("active\n", True), ("activating\n", False), ("", False)])
def test_is_active(stdout, expected):
    def run_cmd(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, 0 if expected else 3, stdout=stdout, stderr="")

    assert SystemdService(logger=DummyLogger()).is_active("admiral.service", run_cmd) is expected
