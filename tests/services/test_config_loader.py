import pytest

from applianceupgrader.errors import UpgraderError
from applianceupgrader.services.config_loader import ConfigLoader


def test_config_loader_returns_empty_without_path():
    assert ConfigLoader().load(None) == {}


def test_config_loader_reads_supported_keys(tmp_path):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text(
        "dbuser: root\n" "target: vc.local\n" "resume: true\n" "startup_grace_seconds: 0\n",
        encoding="utf-8",
    )

    values = ConfigLoader().load(str(config_file))

    assert values == {"dbuser": "root", "target": "vc.local", "resume": True, "startup_grace_seconds": 0}


def test_config_loader_rejects_unknown_keys(tmp_path):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text("target: vc.local\nmystery: 1\n", encoding="utf-8")

    with pytest.raises(UpgraderError, match="Unknown configuration keys: mystery"):
        ConfigLoader().load(str(config_file))


def test_config_loader_rejects_non_mapping(tmp_path):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text("- a\n- b\n", encoding="utf-8")

    with pytest.raises(UpgraderError, match="YAML mapping"):
        ConfigLoader().load(str(config_file))


def test_config_loader_missing_file(tmp_path):
    with pytest.raises(UpgraderError, match="Config file not found"):
        ConfigLoader().load(str(tmp_path / "absent.yml"))


def test_config_loader_keeps_numeric_passwords_as_text(tmp_path):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text("dbpass: 123456\nexternal_psc: ''\n", encoding="utf-8")

    values = ConfigLoader().load(str(config_file))

    assert values == {"dbpass": "123456", "external_psc": ""}


@pytest.mark.parametrize(
    "content, key",
    [
        ("resume: 'yes'\n", "resume"),
        ("startup_grace_seconds: true\n", "startup_grace_seconds"),
        ("target: [a, b]\n", "target"),
    ],
)
def test_config_loader_rejects_wrong_types(tmp_path, content, key):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text(content, encoding="utf-8")

    with pytest.raises(UpgraderError, match=f"Configuration key '{key}' must be"):
        ConfigLoader().load(str(config_file))
