import logging
import os

import click
from rich.console import Console
from rich.logging import RichHandler

from .constants import (
    DEFAULT_DIAGNOSTIC_LOG,
    DEFAULT_ETC_DIR,
    DEFAULT_LOG_DIR,
    DEFAULT_SYSUSER,
    DEFAULT_VAR_DIR,
    SECRET_MODE,
)
from .core import AutoConfigurator
from .errors import AutoConfigureError
from .models import AutoConfigureSettings
from .services.config_loader import ConfigLoader

DEFAULT_CONFIG_FILE = ".temboard-autoconf.yml"

error_console = Console(stderr=True)


def _resolve_option(cli_value, config, key, default=None):
    if cli_value is not None:
        return cli_value
    if key in config:
        return config[key]
    return default


def _optional_int(value):
    return None if value is None else int(value)


logging.basicConfig(
    level="INFO",
    format="%(message)s",
    datefmt="[%X]",
    handlers=[RichHandler(rich_tracebacks=True, show_level=False, show_path=False)],
)


def open_diagnostic_log(logger: logging.Logger, log_file: str) -> logging.FileHandler:
    """Sends every record to a private diagnostic file kept on failure."""
    try:
        file_handler = logging.FileHandler(log_file)
        os.chmod(log_file, SECRET_MODE)
    except OSError as exc:
        raise click.ClickException(f"Could not open diagnostic log {log_file}: {exc}") from exc

    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter("%(asctime)s [%(levelname)s] %(message)s"))
    logger.addHandler(file_handler)
    return file_handler


def close_diagnostic_log(
    logger: logging.Logger,
    file_handler: logging.FileHandler,
    log_file: str,
    exit_code: int,
):
    logger.removeHandler(file_handler)
    file_handler.close()
    if exit_code == 0:
        try:
            os.remove(log_file)
        except FileNotFoundError:
            pass
    else:
        error_console.print(f"[bold red]Failure. See {log_file} for details.[/bold red]")


@click.command()
@click.option(
    "--config",
    required=False,
    type=click.Path(),
    help=f"Path to a YAML configuration file. Defaults to {DEFAULT_CONFIG_FILE} if present.",
)
@click.option("--etc-dir", envvar="ETCDIR", help=f"Agent configuration root (default: {DEFAULT_ETC_DIR}).")
@click.option("--var-dir", envvar="VARDIR", help=f"Agent home root (default: {DEFAULT_VAR_DIR}).")
@click.option("--log-dir", envvar="LOGDIR", help=f"Agent log directory (default: {DEFAULT_LOG_DIR}).")
@click.option(
    "--sysuser",
    envvar="SYSUSER",
    help=f"UNIX user running Postgres and the agent (default: {DEFAULT_SYSUSER}).",
)
@click.option(
    "--sysgroup",
    envvar="SYSGROUP",
    help="UNIX group owning agent files (default: primary group of the system user).",
)
@click.option(
    "--hostname",
    envvar="TEMBOARD_HOSTNAME",
    help="Fully qualified hostname advertised by the agent (default: host FQDN).",
)
@click.option(
    "--port",
    envvar="TEMBOARD_PORT",
    type=click.IntRange(1, 65535),
    help="Force the agent port instead of picking the first free one from 2345.",
)
@click.option("--pguser", envvar="PGUSER", help="Postgres user (default: system user).")
@click.option("--pgdatabase", envvar="PGDATABASE", help="Postgres database (default: Postgres user).")
@click.option("--pgport", envvar="PGPORT", type=click.IntRange(1, 65535), help="Postgres port (default: 5432).")
@click.option(
    "--pghost",
    envvar="PGHOST",
    help="Postgres host or socket directory (default: first unix_socket_directories entry).",
)
@click.option(
    "--log-file",
    type=click.Path(),
    help=f"Diagnostic log, kept on failure (default: {DEFAULT_DIAGNOSTIC_LOG}).",
)
@click.option(
    "--debug",
    envvar="DEBUG",
    is_flag=True,
    default=None,
    help="Log everything to the terminal instead of the diagnostic log.",
)
def main(
    config,
    etc_dir,
    var_dir,
    log_dir,
    sysuser,
    sysgroup,
    hostname,
    port,
    pguser,
    pgdatabase,
    pgport,
    pghost,
    log_file,
    debug,
):
    """Set up a temboard-agent for the Postgres cluster running on this host."""
    logger = logging.getLogger("temboardautoconf")

    try:
        config_loader = ConfigLoader()
        resolved_config = config
        if resolved_config is None:
            default_config_path = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILE)
            if os.path.exists(default_config_path):
                resolved_config = default_config_path

        config_values = config_loader.load(resolved_config)
    except AutoConfigureError as exc:
        raise click.ClickException(str(exc)) from exc

    debug = bool(_resolve_option(debug, config_values, "debug", default=False))
    log_file = _resolve_option(log_file, config_values, "log_file", default=DEFAULT_DIAGNOSTIC_LOG)

    try:
        settings = AutoConfigureSettings(
            etc_dir=_resolve_option(etc_dir, config_values, "etc_dir", default=DEFAULT_ETC_DIR),
            var_dir=_resolve_option(var_dir, config_values, "var_dir", default=DEFAULT_VAR_DIR),
            log_dir=_resolve_option(log_dir, config_values, "log_dir", default=DEFAULT_LOG_DIR),
            sysuser=_resolve_option(sysuser, config_values, "sysuser", default=DEFAULT_SYSUSER),
            sysgroup=_resolve_option(sysgroup, config_values, "sysgroup"),
            hostname=_resolve_option(hostname, config_values, "hostname"),
            port=_optional_int(_resolve_option(port, config_values, "port")),
            pguser=_resolve_option(pguser, config_values, "pguser"),
            pgdatabase=_resolve_option(pgdatabase, config_values, "pgdatabase"),
            pgport=_optional_int(_resolve_option(pgport, config_values, "pgport")),
            pghost=_resolve_option(pghost, config_values, "pghost"),
        )
    except (TypeError, ValueError) as exc:
        raise click.ClickException(f"Invalid configuration value: {exc}") from exc

    logger.setLevel(logging.DEBUG)
    for handler in logging.getLogger().handlers:
        if isinstance(handler, RichHandler):
            handler.setLevel(logging.DEBUG if debug else logging.INFO)

    file_handler = None
    if not debug:
        file_handler = open_diagnostic_log(logger, log_file)

    exit_code = 1
    try:
        exit_code = AutoConfigurator(settings).run()
    finally:
        if file_handler is not None:
            close_diagnostic_log(logger, file_handler, log_file, exit_code)

    raise SystemExit(exit_code)


if __name__ == "__main__":
    main()
