"""Shared domain models for temboard-agent auto-configuration."""

from dataclasses import dataclass, field
from typing import Dict, Optional


@dataclass(frozen=True)
class AutoConfigureSettings:
    """Operator inputs for one provisioning run."""

    etc_dir: str
    var_dir: str
    log_dir: str
    sysuser: str
    sysgroup: Optional[str] = None
    hostname: Optional[str] = None
    port: Optional[int] = None
    pguser: Optional[str] = None
    pgdatabase: Optional[str] = None
    pgport: Optional[int] = None
    pghost: Optional[str] = None


@dataclass(frozen=True)
class ClusterContext:
    """Identity and connection parameters of the target Postgres cluster."""

    sysuser: str
    host: str
    port: int
    user: str
    dbname: str
    data_directory: str
    version: str
    name: str
    pg_ctl: str
    bindir: Optional[str] = None

    @property
    def safe_name(self) -> str:
        return self.name.replace("/", "-")


@dataclass(frozen=True)
class PortAssignment:
    port: int
    allocated: bool = True


@dataclass(frozen=True)
class TLSMaterial:
    cert_file: str
    key_file: str
    generated: bool = False


@dataclass(frozen=True)
class ConfigurationDocument:
    """Section-keyed agent configuration, rendered as an INI overlay."""

    sections: Dict[str, Dict[str, str]] = field(default_factory=dict)
    header: str = ""

    def render(self) -> str:
        lines = []
        if self.header:
            lines.append("#")
            lines.extend(f"# {line}".rstrip() for line in self.header.splitlines())
            lines.extend(["#", ""])
        for name, values in self.sections.items():
            lines.append(f"[{name}]")
            lines.extend(f"{key} = {value}" for key, value in values.items())
            lines.append("")
        return "\n".join(lines)


@dataclass(frozen=True)
class ProvisioningResult:
    """Durable outcome of a successful run, reported to the operator."""

    cluster_name: str
    config_file: str
    overlay_file: str
    port: int
    tls: TLSMaterial
    secret_key: str
    start_command: str
    unit: Optional[str] = None
