"""Actionable error catalog for applianceupgrader."""

from typing import Dict, NamedTuple

_RERUN_HINT = "If upgrade is not already running or completed, run `{command}` and rerun the upgrade."


class Remedy(NamedTuple):
    what: str
    next_step: str

    def render(self, **kwargs: str) -> str:
        return f"{self.what.format(**kwargs)} Suggested action: {self.next_step.format(**kwargs)}"


CATALOG: Dict[str, Remedy] = {
    "dir_exists": Remedy(
        "Directory {path} already exists.",
        _RERUN_HINT.format(command="rm -r {path}"),
    ),
    "file_exists": Remedy(
        "{label} {path} already exists.",
        _RERUN_HINT.format(command="rm {path}"),
    ),
    "phase_done": Remedy(
        "{label} upgrade status shows previously completed.",
        _RERUN_HINT.format(command="rm {path}") + " Use `--resume` to skip it instead.",
    ),
    "migration_interrupted": Remedy(
        "Admiral upgrade status shows previously completed but the Harbor upgrade did not finish.",
        "Do not remove {path}. Rerun the upgrade with `--resume` to continue with the Harbor upgrade.",
    ),
    "container_exists": Remedy(
        "Container {name} already exists.",
        _RERUN_HINT.format(command="docker rm -f {name}"),
    ),
    "file_missing": Remedy(
        "{label} {path} not present.",
        "Make sure {path} exists before retrying the upgrade.",
    ),
    "file_empty": Remedy(
        "{label} {path} has zero size.",
        "Regenerate {path} before retrying the upgrade.",
    ),
    "service_inactive": Remedy(
        "{unit} is not running.",
        "Start it with `systemctl start {unit}` and check `journalctl -u {unit}`.",
    ),
    "registry_data_missing": Remedy(
        "Harbor data is not present in {path}: directory {missing} not found.",
        "Attach the data disk of the previous appliance before retrying.",
    ),
    "db_password_missing": Remedy(
        "--dbpass not set and value not found in {path}.",
        "Pass the Harbor database password with `--dbpass`.",
    ),
    "invalid_credentials": Remedy(
        "Invalid database credentials.",
        "Check `--dbuser`/`--dbpass` against the Harbor database and retry.",
    ),
    "migrator_step_failed": Remedy(
        "Harbor migrator step `{step}` failed.",
        "Inspect the upgrade log. The backup in {backup_dir} is kept for manual recovery.",
    ),
    "instance_migration_failed": Remedy(
        "Data migration to new Admiral failed.",
        "Both Admiral containers were left running. Inspect `docker logs {name}` before retrying.",
    ),
    "import_failed": Remedy(
        "Importing Harbor data to Admiral failed.",
        "Check that Admiral is reachable on port 8282 and that {token_file} is valid.",
    ),
    "mapping_failed": Remedy(
        "Map Harbor data failed.",
        "Inspect {mapping_file} and the upgrade log, then retry.",
    ),
    "registration_failed": Remedy(
        "Failed to register appliance.",
        "Check vCenter target and credentials and provided PSC settings.",
    ),
    "psc_tokens_failed": Remedy(
        "Failed to get PSC tokens.",
        "Check PSC connectivity and rerun the upgrade.",
    ),
    "upgrade_declined": Remedy(
        "Exiting without performing upgrade.",
        "If the version of the old appliance is not {version}, contact support.",
    ),
}


def actionable_error(code: str, **kwargs: str) -> str:
    try:
        remedy = CATALOG[code]
    except KeyError:
        raise KeyError(f"Unknown error catalog key: {code}") from None
    return remedy.render(**kwargs)
