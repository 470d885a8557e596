"""Host and operator input validation for temboard-agent auto-configuration."""

import grp
import pwd
import socket
from typing import Optional

from temboardautoconf.errors import InvalidEnvironmentError
from temboardautoconf.errors_catalog import actionable_error


class ValidationService:
    """Validates the hostname and system account the agent will run with."""

    def __init__(self, getfqdn=socket.getfqdn):
        self.getfqdn = getfqdn

    def resolve_hostname(self, hostname: Optional[str]) -> str:
        """Returns a fully qualified hostname, defaulting to the host FQDN."""
        resolved = (hostname or self.getfqdn() or "").strip()
        if "." not in resolved.strip("."):
            raise InvalidEnvironmentError(actionable_error("unqualified_hostname", hostname=resolved))
        return resolved

    def resolve_sysgroup(self, sysuser: str, sysgroup: Optional[str]) -> str:
        try:
            entry = pwd.getpwnam(sysuser)
        except KeyError as exc:
            raise InvalidEnvironmentError(actionable_error("unknown_sysuser", sysuser=sysuser)) from exc

        if sysgroup:
            return sysgroup

        try:
            return grp.getgrgid(entry.pw_gid).gr_name
        except KeyError:
            return str(entry.pw_gid)
