import os
import re
import stat

from applianceupgrader.constants import MANAGED_KEY_MARKER
from applianceupgrader.services.filesystem import FileSystemService
from applianceupgrader.services.harbor_config import (
    ConfigDocument,
    HarborConfigService,
    generate_secret,
)


class DummyLogger:
    def info(self, *_args, **_kwargs):
        return None

    def debug(self, *_args, **_kwargs):
        return None

    def warning(self, *_args, **_kwargs):
        return None


class DummyConsole:
    def print(self, *_args, **_kwargs):
        return None


HARBOR_CFG = """## Configuration file of Harbor
hostname = reg.mydomain.com
ui_url_protocol=https

#The password for the root user of mysql db
db_password = root123
max_job_workers = 3
"""


def build_service(tmp_path, content=HARBOR_CFG):
    cfg = tmp_path / "harbor.cfg"
    cfg.write_text(content, encoding="utf-8")
    service = HarborConfigService(
        cfg_path=str(cfg),
        filesystem_service=FileSystemService(logger=DummyLogger(), console=DummyConsole()),
        logger=DummyLogger(),
    )
    return service, cfg


def test_generate_secret_is_32_hex_characters():
    first = generate_secret()
    second = generate_secret()

    assert re.fullmatch(r"[0-9a-f]{32}", first)
    assert first != second


def test_read_key(tmp_path):
    service, _ = build_service(tmp_path, HARBOR_CFG + "clair_db_password =\n")

    assert service.read_key("db_password") == "root123"
    assert service.read_key("ui_url_protocol") == "https"
    assert service.read_key("clair_db_password") is None
    assert service.read_key("missing_key") is None


def test_read_key_returns_none_for_missing_file(tmp_path):
    service = HarborConfigService(
        cfg_path=str(tmp_path / "absent.cfg"),
        filesystem_service=FileSystemService(logger=DummyLogger(), console=DummyConsole()),
        logger=DummyLogger(),
    )

    assert service.read_key("db_password") is None


def test_ensure_key_appends_once(tmp_path):
    service, cfg = build_service(tmp_path)

    assert service.ensure_key("clair_db_password", lambda: "generated", managed=True) is True
    assert service.ensure_key("clair_db_password", lambda: "other", managed=True) is False

    text = cfg.read_text(encoding="utf-8")
    assert text.count("clair_db_password") == 1
    assert text.endswith(f"{MANAGED_KEY_MARKER}\nclair_db_password = generated\n")


def test_ensure_key_keeps_present_empty_value(tmp_path):
    service, cfg = build_service(tmp_path, HARBOR_CFG + "clair_db_password =\n")

    assert service.ensure_key("clair_db_password", lambda: "generated") is False
    assert "generated" not in cfg.read_text(encoding="utf-8")


def test_mark_managed_is_idempotent(tmp_path):
    service, cfg = build_service(tmp_path)

    assert service.mark_managed("db_password") is True
    assert service.mark_managed("db_password") is False
    assert service.mark_managed("missing_key") is False

    text = cfg.read_text(encoding="utf-8")
    assert text.count(MANAGED_KEY_MARKER) == 1
    assert f"{MANAGED_KEY_MARKER}\ndb_password = root123\n" in text


def test_upgrade_configuration_preserves_untouched_lines(tmp_path):
    service, cfg = build_service(tmp_path)

    service.upgrade_configuration()
    first_pass = cfg.read_text(encoding="utf-8")
    service.upgrade_configuration()

    assert cfg.read_text(encoding="utf-8") == first_pass
    for line in HARBOR_CFG.splitlines():
        assert line in first_pass.splitlines()
    assert first_pass.count(MANAGED_KEY_MARKER) == 2
    assert re.search(
        rf"{re.escape(MANAGED_KEY_MARKER)}\nclair_db_password = [0-9a-f]{{32}}\n", first_pass
    )


def test_upgrade_configuration_keeps_file_mode(tmp_path):
    service, cfg = build_service(tmp_path)
    os.chmod(cfg, 0o600)

    service.upgrade_configuration()

    assert stat.S_IMODE(os.stat(cfg).st_mode) == 0o600


def test_document_keeps_marker_before_non_entry_lines():
    text = f"{MANAGED_KEY_MARKER}\n\nhostname = a\n"

    document = ConfigDocument.parse(text)

    assert document.serialize() == text
    assert document.get("hostname").managed is False
