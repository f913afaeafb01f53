"""In-place upgrade of the Harbor key/value configuration (harbor.cfg)."""

import base64
import hashlib
import re
import secrets
from dataclasses import dataclass
from typing import Callable, List, Optional, Union

from applianceupgrader.constants import MANAGED_KEY_MARKER
from applianceupgrader.errors import UpgraderError

_ENTRY_PATTERN = re.compile(r"^(?P<key>[A-Za-z0-9_.\-]+)\s*=(?P<value>.*)$")


def generate_secret() -> str:
    """32 random bytes, base-64 encoded, SHA-256 hashed, cut to 32 hex chars."""
    encoded = base64.b64encode(secrets.token_bytes(32)) + b"\n"
    return hashlib.sha256(encoded).hexdigest()[:32]


@dataclass
class ConfigEntry:
    key: str
    value: str
    managed: bool
    raw: str


class ConfigDocument:
    """Ordered view of harbor.cfg.

    Entries keep their original line text so that untouched keys serialize
    unchanged. Lines that are not ``key = value`` are carried verbatim.
    """

    def __init__(self, items: List[Union[ConfigEntry, str]]):
        self.items = items

    @classmethod
    def parse(cls, text: str) -> "ConfigDocument":
        items: List[Union[ConfigEntry, str]] = []
        pending_marker = False

        for line in text.splitlines():
            match = _ENTRY_PATTERN.match(line)
            if match:
                items.append(
                    ConfigEntry(
                        key=match.group("key"),
                        value=match.group("value").strip(),
                        managed=pending_marker,
                        raw=line,
                    )
                )
                pending_marker = False
                continue

            if pending_marker:
                items.append(MANAGED_KEY_MARKER)
            pending_marker = line.strip() == MANAGED_KEY_MARKER
            if not pending_marker:
                items.append(line)

        if pending_marker:
            items.append(MANAGED_KEY_MARKER)
        return cls(items)

    def serialize(self) -> str:
        lines: List[str] = []
        for item in self.items:
            if isinstance(item, ConfigEntry):
                if item.managed:
                    lines.append(MANAGED_KEY_MARKER)
                lines.append(item.raw)
            else:
                lines.append(item)
        return "\n".join(lines) + "\n" if lines else ""

    def get(self, key: str) -> Optional[ConfigEntry]:
        for item in self.items:
            if isinstance(item, ConfigEntry) and item.key == key:
                return item
        return None

    def append(self, key: str, value: str, managed: bool = False) -> ConfigEntry:
        entry = ConfigEntry(key=key, value=value, managed=managed, raw=f"{key} = {value}")
        self.items.append(entry)
        return entry


class HarborConfigService:
    """Adds missing keys and managed markers to harbor.cfg.

    Each mutation is one read-modify-write replaced atomically on disk.
    """

    def __init__(self, cfg_path: str, filesystem_service, logger):
        self.cfg_path = cfg_path
        self.filesystem_service = filesystem_service
        self.logger = logger

    def load(self) -> ConfigDocument:
        return ConfigDocument.parse(self.filesystem_service.read_text(self.cfg_path))

    def save(self, document: ConfigDocument):
        self.filesystem_service.write_text_atomic(self.cfg_path, document.serialize())

    def read_key(self, key: str) -> Optional[str]:
        try:
            entry = self.load().get(key)
        except UpgraderError:
            self.logger.warning("Could not read %s", self.cfg_path)
            return None
        if entry is None or not entry.value:
            self.logger.info("Key not found: %s", key)
            return None
        return entry.value

    def ensure_key(self, key: str, value_factory: Callable[[], str], managed: bool = False) -> bool:
        # A present key with an empty value counts as present.
        document = self.load()
        if document.get(key) is not None:
            self.logger.info("Key found: %s, skipping", key)
            return False

        if managed:
            self.logger.info("Key not found: %s, adding managed key", key)
        else:
            self.logger.info("Key not found: %s, adding key", key)
        document.append(key, value_factory(), managed=managed)
        self.save(document)
        return True

    def mark_managed(self, key: str) -> bool:
        document = self.load()
        entry = document.get(key)
        if entry is None:
            self.logger.info("Key not found: %s", key)
            return False
        if entry.managed:
            self.logger.info("Key %s already managed, skipping.", key)
            return False

        self.logger.info("Setting managed key %s", key)
        entry.managed = True
        self.save(document)
        return True

    def upgrade_configuration(self):
        self.ensure_key("clair_db_password", generate_secret, managed=True)
        self.mark_managed("db_password")
        self.mark_managed("clair_db_password")
