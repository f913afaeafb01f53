import re
import subprocess

import pytest

from applianceupgrader.errors import PreconditionFailed, StateConflict, UpgraderError
from applianceupgrader.models import ApplianceLayout, Phase
from applianceupgrader.services.containers import ContainerRuntimeService
from applianceupgrader.services.filesystem import FileSystemService
from applianceupgrader.services.preflight import PreflightChecker
from applianceupgrader.services.status_markers import StatusMarkerStore
from applianceupgrader.services.systemd import SystemdService


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def build_checker(tmp_path):
    layout = ApplianceLayout.rooted(str(tmp_path))
    filesystem = FileSystemService(logger=DummyLogger(), console=DummyConsole())
    store = StatusMarkerStore(layout=layout, filesystem_service=filesystem, logger=DummyLogger())
    checker = PreflightChecker(
        logger=DummyLogger(),
        marker_store=store,
        systemd_service=SystemdService(logger=DummyLogger()),
        container_service=ContainerRuntimeService(logger=DummyLogger(), console=DummyConsole()),
    )
    return checker, store, layout


def fake_run_cmd(stdout="", returncode=0):
    def run_cmd(cmd, **_kwargs):
        return subprocess.CompletedProcess(cmd, returncode, stdout=stdout, stderr="")

    return run_cmd


def test_check_dir_absent_names_remediation(tmp_path):
    checker, _, _ = build_checker(tmp_path)
    existing = tmp_path / "harbor_backup"
    existing.mkdir()

    checker.check_dir_absent(str(tmp_path / "missing"))
    with pytest.raises(StateConflict, match=re.escape(f"rm -r {existing}")):
        checker.check_dir_absent(str(existing))


def test_check_file_absent(tmp_path):
    checker, _, _ = build_checker(tmp_path)
    archive = tmp_path / "admiral_backup.tgz"
    archive.write_text("x", encoding="utf-8")

    with pytest.raises(StateConflict, match="Admiral upgrade backup"):
        checker.check_file_absent(str(archive), label="Admiral upgrade backup")


def test_check_file_non_empty(tmp_path):
    checker, _, _ = build_checker(tmp_path)
    token = tmp_path / "tokens.properties"

    with pytest.raises(PreconditionFailed, match="not present"):
        checker.check_file_non_empty(str(token), label="PSC token")

    token.write_text("", encoding="utf-8")
    with pytest.raises(PreconditionFailed, match="zero size"):
        checker.check_file_non_empty(str(token), label="PSC token")

    token.write_text("abc", encoding="utf-8")
    checker.check_file_non_empty(str(token), label="PSC token")


def test_check_service_active(tmp_path):
    checker, _, _ = build_checker(tmp_path)

    checker.check_service_active("admiral.service", fake_run_cmd(stdout="active\n"))
    with pytest.raises(PreconditionFailed, match="admiral.service is not running"):
        checker.check_service_active("admiral.service", fake_run_cmd(stdout="inactive\n", returncode=3))


def test_check_phase_not_done(tmp_path):
    checker, store, _ = build_checker(tmp_path)

    checker.check_phase_not_done(Phase.ADMIRAL)
    store.mark_done(Phase.ADMIRAL)

    with pytest.raises(StateConflict, match="Admiral upgrade status shows previously completed"):
        checker.check_phase_not_done(Phase.ADMIRAL)
    checker.check_phase_not_done(Phase.HARBOR)


def test_check_registry_data_requires_every_directory(tmp_path):
    checker, _, layout = build_checker(tmp_path)
    for name in ("cert", "database", "job_logs"):
        (tmp_path / "data/harbor" / name).mkdir(parents=True)

    with pytest.raises(PreconditionFailed, match="registry"):
        checker.check_registry_data(layout.data_mount)

    (tmp_path / "data/harbor/registry").mkdir()
    checker.check_registry_data(layout.data_mount)


def test_check_container_absent(tmp_path):
    checker, _, _ = build_checker(tmp_path)

    checker.check_container_absent("vic-upgrade-admiral", fake_run_cmd(stdout=""))
    with pytest.raises(StateConflict, match="docker rm -f vic-upgrade-admiral"):
        checker.check_container_absent("vic-upgrade-admiral", fake_run_cmd(stdout="3f2a1b\n"))


def test_check_container_absent_fails_when_docker_unavailable(tmp_path):
    checker, _, _ = build_checker(tmp_path)

    with pytest.raises(UpgraderError, match="Could not query Docker"):
        checker.check_container_absent("vic-upgrade-admiral", fake_run_cmd(returncode=1))
