import logging
import os
import secrets
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from rich.console import Console

from .constants import (
    CONF_MODE,
    CONFIG_FILENAME,
    DIR_MODE,
    LOGROTATE_DIR_MODE,
    LOGROTATE_FILE,
    LOGROTATE_MODE,
    OVERLAY_DIRNAME,
    OVERLAY_FILENAME,
    SECRET_MODE,
    USERS_FILENAME,
)
from .errors import AutoConfigureError, ConflictError
from .errors_catalog import actionable_error
from .models import (
    AutoConfigureSettings,
    ClusterContext,
    PortAssignment,
    ProvisioningResult,
    TLSMaterial,
)
from .services.command_runner import CommandRunner
from .services.configuration import ConfigurationGenerator
from .services.discovery import ClusterDiscoveryService
from .services.filesystem import FileSystemService
from .services.ports import PortAllocatorService
from .services.supervisor import SystemdService
from .services.tls import TLSService
from .services.validation import ValidationService

console = Console()
logger = logging.getLogger("temboardautoconf")

DATA_DIR = Path(__file__).parent / "data"


class AutoConfigurator:
    """Provisions a temboard-agent instance for the cluster running on this host."""

    def __init__(self, settings: AutoConfigureSettings):
        self.settings = settings
        self.data_dir = DATA_DIR
        self.logrotate_file = LOGROTATE_FILE

        self.hostname: Optional[str] = None
        self.sysgroup: Optional[str] = None
        self.pki_dir: Optional[str] = None
        self.result: Optional[ProvisioningResult] = None
        self.current_step_name: Optional[str] = None

        self.command_runner = CommandRunner(logger=logger)
        self.filesystem_service = FileSystemService(logger=logger)
        self.validation_service = ValidationService()
        self.discovery_service = ClusterDiscoveryService(logger=logger)
        self.port_allocator = PortAllocatorService(logger=logger)
        self.tls_service = TLSService(logger=logger, console=console, etc_dir=settings.etc_dir)
        self.configuration_generator = ConfigurationGenerator()
        self.systemd_service = SystemdService(
            logger=logger,
            filesystem_service=self.filesystem_service,
        )

    def _run_step(self, name: str, callback, *args, **kwargs):
        self.current_step_name = name
        logger.debug("Step %s started.", name)
        result = callback(*args, **kwargs)
        logger.debug("Step %s completed.", name)
        self.current_step_name = None
        return result

    def _run_cmd(
        self,
        cmd: List[str],
        check: bool = True,
        capture_output: bool = False,
        env: Optional[Dict[str, str]] = None,
    ) -> subprocess.CompletedProcess:
        return self.command_runner.run(cmd, check=check, capture_output=capture_output, env=env)

    def config_dir(self, cluster: ClusterContext) -> str:
        return os.path.join(self.settings.etc_dir, cluster.name)

    def config_file(self, cluster: ClusterContext) -> str:
        return os.path.join(self.config_dir(cluster), CONFIG_FILENAME)

    def overlay_dir(self, cluster: ClusterContext) -> str:
        return os.path.join(self.config_dir(cluster), OVERLAY_DIRNAME)

    def overlay_file(self, cluster: ClusterContext) -> str:
        return os.path.join(self.overlay_dir(cluster), OVERLAY_FILENAME)

    def home_dir(self, cluster: ClusterContext) -> str:
        return os.path.join(self.settings.var_dir, cluster.name)

    def agent_logfile(self, cluster: ClusterContext) -> str:
        return os.path.join(self.settings.log_dir, f"{cluster.safe_name}.log")

    def validate_environment(self):
        self.hostname = self.validation_service.resolve_hostname(self.settings.hostname)
        logger.info("Using hostname %s.", self.hostname)
        self.sysgroup = self.validation_service.resolve_sysgroup(
            self.settings.sysuser,
            self.settings.sysgroup,
        )

    def discover_cluster(self) -> ClusterContext:
        return self.discovery_service.discover(self.settings, self._run_cmd)

    def verify_no_existing_config(self, cluster: ClusterContext):
        config_file = self.config_file(cluster)
        if not os.path.exists(config_file):
            return

        raise ConflictError(
            actionable_error(
                "existing_configuration",
                path=config_file,
                etc_dir=self.config_dir(cluster),
                home=self.home_dir(cluster),
                logfile=self.agent_logfile(cluster),
            )
        )

    def locate_pki_dir(self, cluster: ClusterContext):
        self.pki_dir = self.tls_service.find_pki_dir(cluster.name)

    def create_directories(self, cluster: ClusterContext):
        owner, group = cluster.sysuser, self.sysgroup
        for path in (
            self.config_dir(cluster),
            self.overlay_dir(cluster),
            self.settings.log_dir,
            self.home_dir(cluster),
        ):
            self.filesystem_service.install_dir(path, mode=DIR_MODE, owner=owner, group=group)

    def install_defaults(self, cluster: ClusterContext):
        owner, group = cluster.sysuser, self.sysgroup
        config_file = self.config_file(cluster)
        logger.info("Configuring temboard-agent in %s .", config_file)
        self.filesystem_service.install_file(
            config_file,
            (self.data_dir / CONFIG_FILENAME).read_text(encoding="utf-8"),
            mode=CONF_MODE,
            owner=owner,
            group=group,
        )
        self.filesystem_service.install_file(
            os.path.join(self.config_dir(cluster), USERS_FILENAME),
            "",
            mode=SECRET_MODE,
            owner=owner,
            group=group,
            backup=True,
        )

        self.filesystem_service.install_dir(
            os.path.dirname(self.logrotate_file),
            mode=LOGROTATE_DIR_MODE,
        )
        installed = self.filesystem_service.install_file_if_absent(
            self.logrotate_file,
            (self.data_dir / "temboard-agent.logrotate").read_text(encoding="utf-8"),
            mode=LOGROTATE_MODE,
        )
        if installed:
            logger.info("Installed log rotation policy %s.", self.logrotate_file)

    def resolve_port_and_tls(self, cluster: ClusterContext) -> Tuple[PortAssignment, TLSMaterial]:
        port = self.port_allocator.allocate(self._run_cmd, override=self.settings.port)
        tls = self.tls_service.resolve(cluster.name, self._run_cmd, pki_dir=self.pki_dir)
        return port, tls

    def write_overlay(
        self,
        cluster: ClusterContext,
        port: PortAssignment,
        tls: TLSMaterial,
        secret_key: str,
    ) -> str:
        document = self.configuration_generator.generate(
            cluster=cluster,
            port=port,
            tls=tls,
            home=self.home_dir(cluster),
            hostname=self.hostname or "",
            secret_key=secret_key,
            logfile=self.agent_logfile(cluster),
        )
        overlay_file = self.overlay_file(cluster)
        logger.info("Saving auto-configuration in %s", overlay_file)
        content = document.render()
        logger.debug("Auto-configuration:\n%s", content)
        self.filesystem_service.install_file(
            overlay_file,
            content,
            mode=CONF_MODE,
            owner=cluster.sysuser,
            group=self.sysgroup,
        )
        return overlay_file

    def register_service(self, cluster: ClusterContext) -> Tuple[Optional[str], str]:
        unit = self.systemd_service.register(
            cluster.name,
            cluster.sysuser,
            self.sysgroup or cluster.sysuser,
            self._run_cmd,
        )
        start_command = self.systemd_service.start_command(
            unit,
            cluster.sysuser,
            self.config_file(cluster),
        )
        return unit, start_command

    def report_success(self, result: ProvisioningResult):
        console.print()
        console.print("[bold green]Success.[/bold green] You can now start temboard-agent using:")
        console.print()
        console.print(f"    {result.start_command}")
        console.print()
        console.print(f"For registration, use secret key [bold]{result.secret_key}[/bold] .")
        console.print("See documentation for detailed instructions.")
        logger.info("Agent for %s configured on port %s.", result.cluster_name, result.port)

    def run(self) -> int:
        try:
            logger.info("Starting temboard-agent auto-configuration...")

            self._run_step("validate_environment", self.validate_environment)
            cluster = self._run_step("discover_cluster", self.discover_cluster)
            self._run_step("verify_no_existing_config", self.verify_no_existing_config, cluster)
            self._run_step("locate_pki_dir", self.locate_pki_dir, cluster)
            self._run_step("create_directories", self.create_directories, cluster)
            self._run_step("install_defaults", self.install_defaults, cluster)
            port, tls = self._run_step("resolve_port_and_tls", self.resolve_port_and_tls, cluster)

            secret_key = secrets.token_hex(16)
            overlay_file = self._run_step(
                "write_overlay",
                self.write_overlay,
                cluster,
                port,
                tls,
                secret_key,
            )
            unit, start_command = self._run_step("register_service", self.register_service, cluster)

            self.result = ProvisioningResult(
                cluster_name=cluster.name,
                config_file=self.config_file(cluster),
                overlay_file=overlay_file,
                port=port.port,
                tls=tls,
                secret_key=secret_key,
                start_command=start_command,
                unit=unit,
            )
            self.report_success(self.result)
            return 0

        except KeyboardInterrupt:
            console.print("[bold red]Operation cancelled by user.[/bold red]")
            logger.info("Operation cancelled by user")
            return 1
        except AutoConfigureError as exc:
            console.print(f"[bold red]Error:[/bold red] {exc}")
            logger.error("%s failed: %s", self.current_step_name or "run", exc)
            return 1
        except Exception as exc:
            console.print(f"[bold red]Unexpected error:[/bold red] {exc}")
            logger.exception("Unexpected error")
            return 1
