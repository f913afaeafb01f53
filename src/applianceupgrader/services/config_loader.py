"""YAML defaults for the applianceupgrader command line."""

from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import yaml

from applianceupgrader.errors import UpgraderError

_TEXT: Tuple[type, ...] = (str,)
_FLAG: Tuple[type, ...] = (bool,)
_NUMBER: Tuple[type, ...] = (int, float)

OPTION_TYPES: Dict[str, Tuple[type, ...]] = {
    "dbuser": _TEXT,
    "dbpass": _TEXT,
    "target": _TEXT,
    "username": _TEXT,
    "password": _TEXT,
    "external_psc": _TEXT,
    "external_psc_domain": _TEXT,
    "appliance_ip": _TEXT,
    "root": _TEXT,
    "log_file": _TEXT,
    "verbose": _FLAG,
    "resume": _FLAG,
    "startup_grace_seconds": _NUMBER,
}


class ConfigLoader:
    """Reads CLI defaults from a YAML mapping.

    Keys mirror the long option names with dashes replaced by underscores.
    Numeric values given for text keys (an all-digit password, say) are kept
    as strings. Null values count as unset.
    """

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.is_file():
            raise UpgraderError(f"Config file not found: {config_path}")

        try:
            with path.open(encoding="utf-8") as file_obj:
                parsed = yaml.safe_load(file_obj)
        except (yaml.YAMLError, OSError) as exc:
            raise UpgraderError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise UpgraderError(f"Config file '{config_path}' must contain a YAML mapping at the root.")

        return self._normalize(parsed)

    @staticmethod
    def _normalize(values: Dict[Any, Any]) -> Dict[str, Any]:
        unknown = sorted(str(key) for key in values if key not in OPTION_TYPES)
        if unknown:
            raise UpgraderError(f"Unknown configuration keys: {', '.join(unknown)}")

        normalized: Dict[str, Any] = {}
        for key, value in values.items():
            expected = OPTION_TYPES[key]
            is_number = isinstance(value, (int, float)) and not isinstance(value, bool)
            if value is None:
                continue
            if expected is _TEXT and is_number:
                normalized[key] = str(value)
            elif isinstance(value, expected) and (expected is not _NUMBER or is_number):
                normalized[key] = value
            else:
                names = " or ".join(kind.__name__ for kind in expected)
                raise UpgraderError(
                    f"Configuration key '{key}' must be {names}, got {type(value).__name__}."
                )
        return normalized
