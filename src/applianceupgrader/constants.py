"""Fixed names, images and ports of the appliance."""

DEFAULT_DB_USER = "root"

MANAGED_KEY_MARKER = "# Managed by configure_harbor.sh"

MIGRATOR_IMAGE = "vmware/harbor-db-migrator:1.2"
ADMIRAL_LEGACY_IMAGE = "vmware/admiral:vic_v1.1.1"
ADMIRAL_IMAGE = "vmware/admiral:ova"

ADMIRAL_UPGRADE_CONTAINER = "vic-upgrade-admiral"
ADMIRAL_CONTAINER = "vic-admiral"

ADMIRAL_PORT = 8282
ADMIRAL_TRANSITIONAL_PORT = 8283
REGISTRATION_URL = "https://localhost:9443/register"
ADMIRAL_LOCAL_ENDPOINT = f"https://localhost:{ADMIRAL_PORT}"

DOCKER_UNIT = "docker.service"
ADMIRAL_UNIT = "admiral.service"
ADMIRAL_STARTUP_UNIT = "admiral_startup.service"
ADMIRAL_STARTUP_PATH = "admiral_startup.path"
HARBOR_UNIT = "harbor.service"
HARBOR_STARTUP_UNIT = "harbor_startup.service"
HARBOR_STARTUP_PATH = "harbor_startup.path"

# Entry prefix inside the Admiral backup tarball, matching the absolute data path.
ADMIRAL_ARCHIVE_NAME = "data/admiral"

HARBOR_DATA_DIRS = ("cert", "database", "job_logs", "registry")

HARBOR_TAB_URL_KEY = "harbor.tab.url"

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S %z %Z"

DIR_MODE = 0o755
