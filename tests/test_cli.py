from click.testing import CliRunner

import applianceupgrader.cli as cli_module


def install_fake_upgrader(monkeypatch, exit_code=0):
    captured = {}

    class FakeUpgrader:
        def __init__(self, **kwargs):
            captured.update(kwargs)

        def run(self):
            return exit_code

    monkeypatch.setattr(cli_module, "ApplianceUpgrader", FakeUpgrader)
    return captured


def write_harbor_cfg(root, content):
    cfg = root / "data" / "harbor" / "harbor.cfg"
    cfg.parent.mkdir(parents=True)
    cfg.write_text(content, encoding="utf-8")


def test_cli_uses_config_and_allows_cli_override(tmp_path, monkeypatch):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text(
        "dbpass: from-config\n"
        "target: config-vc.local\n"
        "username: administrator@vsphere.local\n"
        "password: vc-pw\n"
        "external_psc: ''\n"
        "external_psc_domain: ''\n"
        "startup_grace_seconds: 0\n",
        encoding="utf-8",
    )
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--config",
            str(config_file),
            "--root",
            str(tmp_path),
            "--target",
            "cli-vc.local",
            "--appliance-ip",
            "10.0.0.5",
            "--resume",
        ],
    )

    assert result.exit_code == 0, result.output
    assert captured["db_user"] == "root"
    assert captured["db_password"] == "from-config"
    assert captured["vcenter_target"] == "cli-vc.local"
    assert captured["vcenter_username"] == "administrator@vsphere.local"
    assert captured["external_psc"] == ""
    assert captured["appliance_ip"] == "10.0.0.5"
    assert captured["root"] == str(tmp_path)
    assert captured["resume"] is True
    assert captured["startup_grace_seconds"] == 0.0
    assert (tmp_path / "var" / "log" / "vmware" / "upgrade.log").exists()


def test_cli_reads_db_password_from_harbor_cfg(tmp_path, monkeypatch):
    write_harbor_cfg(tmp_path, "hostname = reg.local\ndb_password = stored-pw\n")
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--root",
            str(tmp_path),
            "--dbuser",
            "harbor",
            "--target",
            "vc.local",
            "--username",
            "admin",
            "--password",
            "vc-pw",
            "--external-psc",
            "",
            "--external-psc-domain",
            "",
        ],
    )

    assert result.exit_code == 0, result.output
    assert captured["db_user"] == "harbor"
    assert captured["db_password"] == "stored-pw"
    assert captured["resume"] is False


def test_cli_fails_without_db_password(tmp_path, monkeypatch):
    write_harbor_cfg(tmp_path, "hostname = reg.local\ndb_password =\n")
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(cli_module.main, ["--root", str(tmp_path)])

    assert result.exit_code != 0
    assert "--dbpass not set and value not found" in result.output
    assert captured == {}


def test_cli_prompts_for_missing_vcenter_details(tmp_path, monkeypatch):
    write_harbor_cfg(tmp_path, "db_password = stored-pw\n")
    captured = install_fake_upgrader(monkeypatch)

    result = CliRunner().invoke(
        cli_module.main,
        ["--root", str(tmp_path)],
        input="vc.local\nadministrator@vsphere.local\nvc-pw\npsc.local\nvsphere.local\n",
    )

    assert result.exit_code == 0, result.output
    assert captured["vcenter_target"] == "vc.local"
    assert captured["vcenter_username"] == "administrator@vsphere.local"
    assert captured["vcenter_password"] == "vc-pw"
    assert captured["external_psc"] == "psc.local"
    assert captured["psc_domain"] == "vsphere.local"


def test_cli_uses_default_config_file_when_present(tmp_path, monkeypatch):
    (tmp_path / ".applianceupgrader.yml").write_text(
        "dbpass: pw\n" "target: vc.local\n" "username: u\n" "password: p\n"
        "external_psc: ''\n" "external_psc_domain: ''\n",
        encoding="utf-8",
    )
    captured = install_fake_upgrader(monkeypatch)
    monkeypatch.chdir(tmp_path)

    result = CliRunner().invoke(cli_module.main, ["--root", str(tmp_path)])

    assert result.exit_code == 0, result.output
    assert captured["vcenter_target"] == "vc.local"


def test_cli_propagates_upgrade_exit_code(tmp_path, monkeypatch):
    install_fake_upgrader(monkeypatch, exit_code=1)

    result = CliRunner().invoke(
        cli_module.main,
        [
            "--root",
            str(tmp_path),
            "--dbpass",
            "pw",
            "--target",
            "vc.local",
            "--username",
            "u",
            "--password",
            "p",
            "--external-psc",
            "",
            "--external-psc-domain",
            "",
        ],
    )

    assert result.exit_code == 1


def test_cli_rejects_unknown_config_keys(tmp_path):
    config_file = tmp_path / "upgrade.yml"
    config_file.write_text("mystery: 1\n", encoding="utf-8")

    result = CliRunner().invoke(cli_module.main, ["--config", str(config_file)])

    assert result.exit_code != 0
    assert "Unknown configuration keys: mystery" in result.output
