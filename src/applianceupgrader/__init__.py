"""
applianceupgrader - In-place upgrade of the Harbor and Admiral appliance
"""

__version__ = "0.1.0"

from .core import ApplianceUpgrader, UpgraderError

__all__ = ["ApplianceUpgrader", "UpgraderError"]
