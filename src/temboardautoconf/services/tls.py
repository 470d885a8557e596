"""TLS certificate resolution for temboard-agent auto-configuration."""

import os
from typing import Callable, List, Optional, Sequence

from temboardautoconf.constants import (
    CERT_SUBJECT,
    CERT_VALIDITY_DAYS,
    PKI_SYSTEM_DIRS,
    SNAKEOIL_CERT,
    SNAKEOIL_KEY,
)
from temboardautoconf.errors import ProvisioningError
from temboardautoconf.errors_catalog import actionable_error
from temboardautoconf.models import TLSMaterial


class TLSService:
    """Reuses the host snake-oil pair or generates a self-signed one."""

    def __init__(self, logger, console, etc_dir: str, system_dirs: Sequence[str] = PKI_SYSTEM_DIRS):
        self.logger = logger
        self.console = console
        self.etc_dir = etc_dir
        self.system_dirs = tuple(system_dirs)

    @staticmethod
    def normalize_name(cluster_name: str) -> str:
        return cluster_name.replace("/", "-")

    def candidate_dirs(self, cluster_name: str) -> List[str]:
        return list(self.system_dirs) + [os.path.join(self.etc_dir, self.normalize_name(cluster_name))]

    def find_pki_dir(self, cluster_name: str) -> str:
        candidates = self.candidate_dirs(cluster_name)
        for directory in candidates:
            if os.path.isdir(directory):
                return directory
        raise ProvisioningError(actionable_error("pki_not_found", searched=", ".join(candidates)))

    @staticmethod
    def find_snakeoil(pki_dir: str) -> Optional[TLSMaterial]:
        cert_file = os.path.join(pki_dir, SNAKEOIL_CERT)
        key_file = os.path.join(pki_dir, SNAKEOIL_KEY)
        if os.path.isfile(cert_file) and os.path.isfile(key_file):
            return TLSMaterial(cert_file=cert_file, key_file=key_file)
        return None

    def generate_self_signed(self, pki_dir: str, cluster_name: str, run_cmd: Callable) -> TLSMaterial:
        name = self.normalize_name(cluster_name)
        cert_file = os.path.join(pki_dir, "certs", f"temboard-agent-{name}.pem")
        key_file = os.path.join(pki_dir, "private", f"temboard-agent-{name}.key")
        os.makedirs(os.path.dirname(cert_file), exist_ok=True)
        os.makedirs(os.path.dirname(key_file), mode=0o700, exist_ok=True)
        self.logger.info("Generating self-signed certificate %s.", cert_file)
        run_cmd(
            [
                "openssl",
                "req",
                "-new",
                "-x509",
                "-days",
                str(CERT_VALIDITY_DAYS),
                "-nodes",
                "-subj",
                CERT_SUBJECT,
                "-out",
                cert_file,
                "-keyout",
                key_file,
            ],
            check=True,
            capture_output=True,
        )
        return TLSMaterial(cert_file=cert_file, key_file=key_file, generated=True)

    def resolve(
        self,
        cluster_name: str,
        run_cmd: Callable,
        pki_dir: Optional[str] = None,
    ) -> TLSMaterial:
        pki_dir = pki_dir or self.find_pki_dir(cluster_name)
        self.logger.debug("Using PKI directory %s.", pki_dir)

        snakeoil = self.find_snakeoil(pki_dir)
        if snakeoil:
            self.logger.info("Using snake-oil SSL certificate.")
            return snakeoil

        material = self.generate_self_signed(pki_dir, cluster_name, run_cmd)
        self.console.print(f"[green]Generated self-signed certificate {material.cert_file}.[/green]")
        return material
