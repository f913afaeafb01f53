"""Domain errors for applianceupgrader."""


class UpgraderError(RuntimeError):
    """Raised when the upgrade cannot continue safely."""


class PreconditionFailed(UpgraderError):
    """A required directory, file or service is missing or not ready."""


class StateConflict(UpgraderError):
    """A marker, target directory or artifact from an earlier attempt already exists."""


class CredentialInvalid(UpgraderError):
    """Supplied credentials were rejected."""


class InvalidCredentials(CredentialInvalid):
    """The database migrator rejected the database credentials."""


class ExternalToolFailed(UpgraderError):
    """An external tool exited with a non-zero status."""


class BackupFailed(ExternalToolFailed):
    pass


class SchemaMigrationFailed(ExternalToolFailed):
    pass


class ExportFailed(ExternalToolFailed):
    pass


class InstanceMigrationFailed(ExternalToolFailed):
    pass


class ImportFailed(ExternalToolFailed):
    pass


class MappingFailed(ExternalToolFailed):
    pass


class NetworkCallFailed(UpgraderError):
    """An HTTP call to an appliance endpoint failed."""
