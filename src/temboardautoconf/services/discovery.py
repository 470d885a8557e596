"""Postgres cluster discovery for temboard-agent auto-configuration."""

import os
import pwd
import shutil
from pathlib import Path
from typing import Callable, Dict, List, Optional, Tuple

from temboardautoconf.constants import DEFAULT_PGPORT, PG_CTL_SEARCH_DIRS
from temboardautoconf.errors import DiscoveryError
from temboardautoconf.errors_catalog import actionable_error
from temboardautoconf.models import AutoConfigureSettings, ClusterContext


class ClusterDiscoveryService:
    """Resolves connection parameters and identity of the running cluster.

    Every query goes through ``psql`` run as the system user owning the
    cluster, configured with libpq environment variables. The environment is
    built per call from the resolved parameters and never exported to the
    current process.
    """

    SETTING_QUERY = "SELECT setting FROM pg_settings WHERE name = '{name}';"
    PROBE_QUERY = "SELECT 'Postgres connection working.';"

    def __init__(self, logger, environ: Optional[Dict[str, str]] = None, which=shutil.which):
        self.logger = logger
        self.environ = dict(os.environ if environ is None else environ)
        self.which = which

    def _libpq_env(self, user: str, dbname: str, port: int, host: Optional[str]) -> Dict[str, str]:
        env = dict(self.environ)
        env.update({"PGUSER": user, "PGDATABASE": dbname, "PGPORT": str(port)})
        if host:
            env["PGHOST"] = host
        else:
            env.pop("PGHOST", None)
        return env

    def _psql(self, sysuser: str, env: Dict[str, str], sql: str, run_cmd: Callable):
        return run_cmd(
            ["sudo", "-Eu", sysuser, "psql", "-Atc", sql],
            check=False,
            capture_output=True,
            env=env,
        )

    def query_setting(
        self,
        sysuser: str,
        env: Dict[str, str],
        name: str,
        run_cmd: Callable,
        default: str = "",
    ) -> str:
        sql = self.SETTING_QUERY.format(name=name)
        result = self._psql(sysuser, env, sql, run_cmd)
        if result.returncode != 0:
            self._unreachable(result)
        value = (result.stdout or "").strip()
        return value or default

    def _unreachable(self, result):
        stderr = (result.stderr or "").strip()
        if stderr:
            self.logger.error(stderr)
        raise DiscoveryError(actionable_error("postgres_unreachable"))

    def check_connection(self, sysuser: str, env: Dict[str, str], run_cmd: Callable):
        result = self._psql(sysuser, env, self.PROBE_QUERY, run_cmd)
        if result.returncode != 0:
            self._unreachable(result)

    def resolve_home(self, sysuser: str) -> str:
        return os.path.realpath(pwd.getpwnam(sysuser).pw_dir)

    def read_version(self, data_directory: str) -> str:
        version_file = Path(data_directory, "PG_VERSION")
        try:
            lines = version_file.read_text(encoding="utf-8").splitlines()
        except OSError as exc:
            raise DiscoveryError(actionable_error("version_unreadable", path=str(version_file))) from exc

        if not lines or not lines[0].strip():
            raise DiscoveryError(actionable_error("version_unreadable", path=str(version_file)))
        return lines[0].strip()

    def resolve_pg_ctl(self, version: str) -> Tuple[str, Optional[str]]:
        """Returns pg_ctl path and the bin directory to prepend to PATH, if any."""
        found = self.which("pg_ctl", path=self.environ.get("PATH"))
        if found:
            return found, None

        searched: List[str] = []
        for template in PG_CTL_SEARCH_DIRS:
            bindir = template.format(version=version)
            searched.append(bindir)
            candidate = os.path.join(bindir, "pg_ctl")
            if os.path.isfile(candidate) and os.access(candidate, os.X_OK):
                return candidate, bindir

        raise DiscoveryError(
            actionable_error("pg_ctl_not_found", version=version, searched=", ".join(searched))
        )

    @staticmethod
    def default_cluster_name(data_directory: str, home: str, version: str, port: int) -> str:
        prefix = home.rstrip("/") + "/"
        if data_directory.startswith(prefix) and len(data_directory) > len(prefix):
            return data_directory[len(prefix):]
        return f"{version}/pg{port}"

    def discover(self, settings: AutoConfigureSettings, run_cmd: Callable) -> ClusterContext:
        sysuser = settings.sysuser
        user = settings.pguser or sysuser
        self.logger.info("Configuring for PostgreSQL user %s.", user)
        dbname = settings.pgdatabase or user
        port = settings.pgport or DEFAULT_PGPORT
        self.logger.info("Configuring for cluster on port %s.", port)

        host = settings.pghost
        if not host:
            env = self._libpq_env(user, dbname, port, host=None)
            host = self.query_setting(sysuser, env, "unix_socket_directories", run_cmd)
        host = host.split(",")[0].strip()

        env = self._libpq_env(user, dbname, port, host)
        self.check_connection(sysuser, env, run_cmd)

        data_directory = self.query_setting(sysuser, env, "data_directory", run_cmd)
        if not data_directory:
            raise DiscoveryError("Postgres did not report its data_directory setting.")
        self.logger.info("Configuring for cluster at %s.", data_directory)

        version = self.read_version(data_directory)
        pg_ctl, bindir = self.resolve_pg_ctl(version)
        if bindir:
            self.logger.info("Using %s.", pg_ctl)

        home = self.resolve_home(sysuser)
        default_name = self.default_cluster_name(data_directory, home, version, port)
        name = self.query_setting(sysuser, env, "cluster_name", run_cmd, default=default_name)

        return ClusterContext(
            sysuser=sysuser,
            host=host,
            port=port,
            user=user,
            dbname=dbname,
            data_directory=data_directory,
            version=version,
            name=name,
            pg_ctl=pg_ctl,
            bindir=bindir,
        )
