"""Shared domain models for applianceupgrader."""

import os
from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Dict, List, Optional, Tuple


class Phase(str, Enum):
    """Upgrade phases that leave a durable completion marker."""

    ADMIRAL = "admiral_upgrade"
    HARBOR = "harbor_upgrade"

    @property
    def label(self) -> str:
        return self.value.split("_")[0].capitalize()


@dataclass(frozen=True)
class ApplianceLayout:
    """Fixed filesystem locations of the appliance."""

    data_mount: str = "/data/harbor"
    harbor_cfg: str = "/data/harbor/harbor.cfg"
    harbor_database: str = "/data/harbor/database"
    harbor_backup: str = "/data/harbor_backup"
    harbor_migration: str = "/data/harbor_migration"
    harbor_psc_token: str = "/etc/vmware/psc/harbor/tokens.properties"
    admiral_psc_dir: str = "/etc/vmware/psc/admiral"
    admiral_psc_token: str = "/etc/vmware/psc/admiral/tokens.properties"
    admiral_psc_config: str = "/etc/vmware/psc/admiral/psc-config.properties"
    admiral_data: str = "/data/admiral"
    admiral_new_data: str = "/data/admiral_new"
    admiral_backup: str = "/etc/vmware/upgrade/admiral_backup.tgz"
    admiral_migrate_script: str = "/etc/vmware/admiral/migrate.sh"
    admiral_import_tool: str = "/etc/vmware/harbor/admiral_import"
    psc_token_script: str = "/etc/vmware/psc/get_token.sh"
    admiral_status: str = "/etc/vmware/admiral/upgrade_status"
    harbor_status: str = "/etc/vmware/harbor/upgrade_status"
    timestamp_file: str = "/registration-timestamps.txt"
    appliance_version: str = "/etc/vmware/version"
    data_version: str = "/data/version"
    upgrade_log: str = "/var/log/vmware/upgrade.log"
    upgrade_report: str = "/var/log/vmware/upgrade-report.json"

    @classmethod
    def rooted(cls, root: Optional[str]) -> "ApplianceLayout":
        """Returns the default layout relocated under ``root``."""
        if not root or root == os.sep:
            return cls()

        defaults = cls()
        relocated = {
            item.name: os.path.join(root, getattr(defaults, item.name).lstrip("/"))
            for item in fields(cls)
        }
        return cls(**relocated)

    @property
    def admiral_configs_dir(self) -> str:
        return os.path.join(self.admiral_data, "configs")

    @property
    def admiral_auth_config(self) -> str:
        # Only written by the 1.2.x Admiral, absent on 1.1.x data disks.
        return os.path.join(self.admiral_configs_dir, "psc-config.properties")

    @property
    def admiral_config_properties(self) -> str:
        return os.path.join(self.admiral_configs_dir, "config.properties")

    def marker_path(self, phase: Phase) -> str:
        if phase is Phase.ADMIRAL:
            return self.admiral_status
        return self.harbor_status


@dataclass(frozen=True)
class DbCredentials:
    user: str
    password: str = field(repr=False)

    def as_env(self) -> Dict[str, str]:
        return {"DB_USR": self.user, "DB_PWD": self.password}


@dataclass(frozen=True)
class MigrationWorkspace:
    """Backup and export areas used by one data migration attempt."""

    backup_dir: str
    export_dir: str

    @property
    def projects_file(self) -> str:
        return os.path.join(self.export_dir, "harbor_projects.json")

    @property
    def mapping_file(self) -> str:
        return os.path.join(self.export_dir, "harbor_map_projects.json")


@dataclass(frozen=True)
class ServiceInstance:
    """A Manager instance bound to a host port and backed by a data directory."""

    name: str
    image: str
    host_port: int
    data_dir: str

    def address(self, appliance_ip: str) -> str:
        return f"{appliance_ip}:{self.host_port}"


@dataclass(frozen=True)
class ContainerSpec:
    name: str
    image: str
    ports: List[Tuple[int, int]] = field(default_factory=list)
    volumes: List[Tuple[str, str]] = field(default_factory=list)
    environment: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class UpgradeContext:
    """Inputs and computed flags of one upgrade attempt."""

    db_credentials: DbCredentials
    vcenter_target: str
    vcenter_username: str
    vcenter_password: str = field(repr=False)
    external_psc: str
    psc_domain: str
    started_at: str
    layout: ApplianceLayout
    appliance_ip: Optional[str] = None
    data_upgrade_needed: bool = False
    resume: bool = False

    @property
    def workspace(self) -> MigrationWorkspace:
        return MigrationWorkspace(
            backup_dir=self.layout.harbor_backup,
            export_dir=self.layout.harbor_migration,
        )
