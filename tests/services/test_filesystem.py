import pytest

from applianceupgrader.errors import UpgraderError
from applianceupgrader.services.filesystem import FileSystemService


class DummyLogger:
    def debug(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


def build_service():
    return FileSystemService(logger=DummyLogger(), console=DummyConsole())


def test_write_text_atomic_creates_parent_and_leaves_no_temp_files(tmp_path):
    target = tmp_path / "etc" / "vmware" / "registration-timestamps.txt"

    build_service().write_text_atomic(str(target), "2026-10-17\n")

    assert target.read_text(encoding="utf-8") == "2026-10-17\n"
    assert [path.name for path in target.parent.iterdir()] == ["registration-timestamps.txt"]


def test_copy_and_promote(tmp_path):
    service = build_service()
    source = tmp_path / "cert"
    source.mkdir()
    (source / "server.crt").write_text("crt", encoding="utf-8")
    staged = tmp_path / "new" / "configs"
    staged.mkdir(parents=True)

    service.copy_dir_contents(str(source), str(staged))
    service.copy_file(str(source / "server.crt"), str(tmp_path / "new"))
    service.promote_dir(str(tmp_path / "new"), str(tmp_path / "current"))

    assert (tmp_path / "current" / "configs" / "server.crt").exists()
    assert (tmp_path / "current" / "server.crt").exists()
    assert not (tmp_path / "new").exists()


def test_errors_are_wrapped(tmp_path):
    service = build_service()

    with pytest.raises(UpgraderError, match="Could not read"):
        service.read_text(str(tmp_path / "missing"))
    with pytest.raises(UpgraderError, match="Could not remove"):
        service.remove_dir(str(tmp_path / "missing"))
    with pytest.raises(UpgraderError, match="Failed to copy"):
        service.copy_file(str(tmp_path / "missing"), str(tmp_path))
