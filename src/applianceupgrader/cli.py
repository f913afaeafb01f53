import logging
import os

import click
from rich.logging import RichHandler

from .constants import DEFAULT_DB_USER
from .core import ApplianceUpgrader, UpgraderError, console
from .errors_catalog import actionable_error
from .models import ApplianceLayout
from .services.config_loader import ConfigLoader
from .services.filesystem import FileSystemService
from .services.harbor_config import HarborConfigService
from .services.operator import ConsoleOperator


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def _attach_log_file(logger: logging.Logger, log_file: str, verbose: bool):
    try:
        os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)
        file_handler = logging.FileHandler(log_file)
    except OSError as exc:
        raise click.ClickException(f"Could not open log file {log_file}: {exc}") from exc
    file_handler.setLevel(logging.DEBUG if verbose else logging.INFO)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(file_handler)


@click.command()
@click.option("--dbuser", required=False, help="Harbor database user (default: root).")
@click.option(
    "--dbpass",
    required=False,
    help="Harbor database password. Defaults to db_password from harbor.cfg.",
)
@click.option("--target", required=False, help="vCenter Server FQDN or IP.")
@click.option("--username", required=False, help="vCenter Administrator username.")
@click.option("--password", required=False, help="vCenter Administrator password.")
@click.option("--external-psc", required=False, help="FQDN of an external PSC instance, if any.")
@click.option("--external-psc-domain", required=False, help="Admin domain of the external PSC, if any.")
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help="Path to a YAML configuration file. Defaults to .applianceupgrader.yml if present.",
)
@click.option(
    "--appliance-ip",
    required=False,
    help="Appliance IP address. Detected from eth0 when omitted.",
)
@click.option(
    "--root",
    required=False,
    type=click.Path(),
    help="Filesystem root holding the appliance layout (default: /).",
)
@click.option("--log-file", type=click.Path(), help="Path to log file (default: /var/log/vmware/upgrade.log).")
@click.option("--verbose", is_flag=True, default=None, help="Enable verbose logging")
@click.option(
    "--resume",
    is_flag=True,
    default=None,
    help="Skip upgrade phases whose completion marker already exists instead of aborting.",
)
def main(
    dbuser,
    dbpass,
    target,
    username,
    password,
    external_psc,
    external_psc_domain,
    config,
    appliance_ip,
    root,
    log_file,
    verbose,
    resume,
):
    """Upgrade the Harbor and Admiral appliance in place."""
    logger = logging.getLogger("applianceupgrader")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), ".applianceupgrader.yml")
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    dbuser = _resolve_option(dbuser, config_values, "dbuser") or DEFAULT_DB_USER
    dbpass = _resolve_option(dbpass, config_values, "dbpass")
    target = _resolve_option(target, config_values, "target")
    username = _resolve_option(username, config_values, "username")
    password = _resolve_option(password, config_values, "password")
    external_psc = _resolve_option(external_psc, config_values, "external_psc")
    external_psc_domain = _resolve_option(external_psc_domain, config_values, "external_psc_domain")
    appliance_ip = _resolve_option(appliance_ip, config_values, "appliance_ip")
    root = _resolve_option(root, config_values, "root")
    verbose = bool(_resolve_option(verbose, config_values, "verbose", default=False))
    resume = bool(_resolve_option(resume, config_values, "resume", default=False))
    startup_grace_seconds = float(
        _resolve_option(None, config_values, "startup_grace_seconds", default=3.0)
    )

    layout = ApplianceLayout.rooted(root)
    log_file = _resolve_option(log_file, config_values, "log_file", default=layout.upgrade_log)

    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.INFO)

    _attach_log_file(logger, log_file, verbose)

    if dbpass:
        logger.info("--dbpass overriding stored password")
    else:
        logger.info("Getting password from %s", layout.harbor_cfg)
        harbor_config = HarborConfigService(
            cfg_path=layout.harbor_cfg,
            filesystem_service=FileSystemService(logger=logger, console=console),
            logger=logger,
        )
        dbpass = harbor_config.read_key("db_password")

    if not dbpass:
        raise click.ClickException(actionable_error("db_password_missing", path=layout.harbor_cfg))

    operator = ConsoleOperator()
    if not target:
        target = operator.ask("Enter vCenter Server FQDN or IP")
    if not username:
        username = operator.ask("Enter vCenter Administrator Username")
    if not password:
        password = operator.ask("Enter vCenter Administrator Password", hide_input=True)
    if external_psc is None:
        external_psc = operator.ask(
            "If using an external PSC, enter the FQDN of the PSC instance (leave blank otherwise)",
            default="",
        )
    if external_psc_domain is None:
        external_psc_domain = operator.ask(
            "If using an external PSC, enter the PSC Admin Domain (leave blank otherwise)",
            default="",
        )

    try:
        upgrader = ApplianceUpgrader(
            db_user=dbuser,
            db_password=dbpass,
            vcenter_target=target,
            vcenter_username=username,
            vcenter_password=password,
            external_psc=external_psc,
            psc_domain=external_psc_domain,
            appliance_ip=appliance_ip,
            root=root,
            resume=resume,
            startup_grace_seconds=startup_grace_seconds,
            operator=operator,
        )
    except UpgraderError as exc:
        raise click.ClickException(str(exc)) from exc

    raise SystemExit(upgrader.run())


if __name__ == "__main__":
    main()
