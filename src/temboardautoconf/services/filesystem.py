"""Filesystem helpers for temboard-agent auto-configuration."""

import logging
import os
import shutil
from typing import Optional

from temboardautoconf.errors import AutoConfigureError


class FileSystemService:
    """Encapsulates file and directory side effects with explicit ownership."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger

    def set_permissions(self, path: str, mode: int):
        try:
            os.chmod(path, mode)
        except OSError as exc:
            raise AutoConfigureError(f"Could not set permissions on {path}: {exc}") from exc

    def set_owner(self, path: str, owner: Optional[str], group: Optional[str]):
        if owner is None and group is None:
            return

        try:
            shutil.chown(path, user=owner, group=group)
        except (OSError, LookupError) as exc:
            raise AutoConfigureError(
                f"Could not set owner {owner}:{group} on {path}: {exc}"
            ) from exc

    def install_dir(self, path: str, mode: int, owner: Optional[str] = None, group: Optional[str] = None):
        """Creates ``path`` if needed, then enforces owner and mode."""
        try:
            os.makedirs(path, exist_ok=True)
        except OSError as exc:
            raise AutoConfigureError(f"Could not create directory {path}: {exc}") from exc

        self.set_owner(path, owner, group)
        self.set_permissions(path, mode)
        self.logger.debug("Installed directory %s (%o).", path, mode)

    def install_file(
        self,
        path: str,
        content: str,
        mode: int,
        owner: Optional[str] = None,
        group: Optional[str] = None,
        backup: bool = False,
    ):
        if backup and os.path.exists(path):
            backup_path = f"{path}~"
            os.replace(path, backup_path)
            self.logger.info("Backed up %s to %s.", path, backup_path)

        try:
            with open(path, "w", encoding="utf-8") as file_obj:
                file_obj.write(content)
        except OSError as exc:
            raise AutoConfigureError(f"Could not write {path}: {exc}") from exc

        self.set_owner(path, owner, group)
        self.set_permissions(path, mode)
        self.logger.debug("Installed file %s (%o).", path, mode)

    def install_file_if_absent(self, path: str, content: str, mode: int) -> bool:
        """Creates ``path`` exclusively. Returns False when it already exists."""
        try:
            with open(path, "x", encoding="utf-8") as file_obj:
                file_obj.write(content)
        except FileExistsError:
            self.logger.debug("Keeping existing %s.", path)
            return False
        except OSError as exc:
            raise AutoConfigureError(f"Could not write {path}: {exc}") from exc

        self.set_permissions(path, mode)
        self.logger.debug("Installed file %s (%o).", path, mode)
        return True
