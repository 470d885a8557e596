"""Actionable error catalog for temboard-agent auto-configuration."""

from typing import Dict

_ERROR_MESSAGES: Dict[str, Dict[str, str]] = {
    "unqualified_hostname": {
        "what": "FQDN is not properly configured: `{hostname}` has no domain part.",
        "next": "Set the agent hostname with `--hostname` or the TEMBOARD_HOSTNAME env var.",
    },
    "unknown_sysuser": {
        "what": "System user `{sysuser}` does not exist.",
        "next": "Run as the UNIX user owning the cluster with `--sysuser` or SYSUSER.",
    },
    "postgres_unreachable": {
        "what": "Can't connect to Postgres cluster.",
        "next": "Check the cluster is running and set PGHOST, PGPORT or PGUSER accordingly.",
    },
    "version_unreadable": {
        "what": "Failed to read Postgres version from {path}.",
        "next": "Check that the data directory reported by Postgres is readable by root.",
    },
    "pg_ctl_not_found": {
        "what": "Failed to find pg_ctl for Postgres {version}. Searched: {searched}.",
        "next": "Install the Postgres server binaries or add their directory to PATH.",
    },
    "no_free_port": {
        "what": "No free port between {start} and {end}.",
        "next": "Free a port in this range or force one with `--port` or TEMBOARD_PORT.",
    },
    "pki_not_found": {
        "what": "Failed to find PKI directory. Searched: {searched}.",
        "next": "Install the system CA bundle package or create one of these directories.",
    },
    "existing_configuration": {
        "what": "{path} already exists. Refusing to overwrite existing configuration.",
        "next": "To clean previous installation, remove {etc_dir}, {home} and {logfile}.",
    },
}


def actionable_error(code: str, **kwargs: str) -> str:
    if code not in _ERROR_MESSAGES:
        raise KeyError(f"Unknown error catalog key: {code}")

    template = _ERROR_MESSAGES[code]
    what = template["what"].format(**kwargs)
    next_step = template["next"].format(**kwargs)
    return f"{what} Suggested action: {next_step}"
