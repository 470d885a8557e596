"""systemd registration for temboard-agent instances."""

import os
from typing import Callable, Optional

from temboardautoconf.constants import CONF_MODE, DEFAULT_SYSUSER, SYSTEMCTL, SYSTEMD_UNIT_DIR


class SystemdService:
    """Enables the per-cluster ``temboard-agent@`` template unit."""

    UNIT_TEMPLATE = "temboard-agent@{instance}.service"

    def __init__(
        self,
        logger,
        filesystem_service,
        systemctl: str = SYSTEMCTL,
        unit_dir: str = SYSTEMD_UNIT_DIR,
    ):
        self.logger = logger
        self.filesystem_service = filesystem_service
        self.systemctl = systemctl
        self.unit_dir = unit_dir

    def is_available(self) -> bool:
        return os.path.isfile(self.systemctl) and os.access(self.systemctl, os.X_OK)

    def unit_name(self, cluster_name: str, run_cmd: Callable) -> str:
        result = run_cmd(["systemd-escape", cluster_name], check=True, capture_output=True)
        return self.UNIT_TEMPLATE.format(instance=result.stdout.strip())

    def build_user_override(self, sysuser: str, sysgroup: str) -> str:
        return f"[Service]\nUser={sysuser}\nGroup={sysgroup}\n"

    def write_user_override(self, unit: str, sysuser: str, sysgroup: str) -> str:
        dropin_dir = os.path.join(self.unit_dir, f"{unit}.d")
        path = os.path.join(dropin_dir, "user.conf")
        self.filesystem_service.install_dir(dropin_dir, mode=0o755)
        self.filesystem_service.install_file(
            path,
            self.build_user_override(sysuser, sysgroup),
            mode=CONF_MODE,
        )
        self.logger.info("Running %s as %s:%s.", unit, sysuser, sysgroup)
        return path

    def register(
        self,
        cluster_name: str,
        sysuser: str,
        sysgroup: str,
        run_cmd: Callable,
    ) -> Optional[str]:
        """Enables the unit and returns its name, or None without systemd."""
        if not self.is_available():
            self.logger.info("systemd not found, skipping service registration.")
            return None

        unit = self.unit_name(cluster_name, run_cmd)
        self.logger.info("Enabling systemd unit %s.", unit)
        if sysuser != DEFAULT_SYSUSER:
            self.write_user_override(unit, sysuser, sysgroup)
        run_cmd([self.systemctl, "enable", unit], check=True, capture_output=True)
        return unit

    def start_command(self, unit: Optional[str], sysuser: str, config_file: str) -> str:
        if unit:
            return f"systemctl start {unit}"
        return f"sudo -u {sysuser} temboard-agent -c {config_file}"
