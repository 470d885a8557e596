"""Configuration loader for temboard-agent auto-configuration."""

from pathlib import Path
from typing import Any, Dict, Optional

import yaml

from temboardautoconf.errors import AutoConfigureError


class ConfigLoader:
    """Loads YAML configuration files for CLI defaults."""

    SUPPORTED_KEYS = {
        "etc_dir",
        "var_dir",
        "log_dir",
        "sysuser",
        "sysgroup",
        "hostname",
        "port",
        "pguser",
        "pgdatabase",
        "pgport",
        "pghost",
        "log_file",
        "debug",
    }

    def load(self, config_path: Optional[str]) -> Dict[str, Any]:
        if not config_path:
            return {}

        path = Path(config_path)
        if not path.exists():
            raise AutoConfigureError(f"Config file not found: {config_path}")

        try:
            parsed = yaml.safe_load(path.read_text(encoding="utf-8"))
        except (yaml.YAMLError, OSError) as exc:
            raise AutoConfigureError(f"Invalid config file '{config_path}': {exc}") from exc

        if parsed is None:
            return {}
        if not isinstance(parsed, dict):
            raise AutoConfigureError("Config file must contain a YAML mapping at the root.")

        unknown = sorted(set(parsed.keys()) - self.SUPPORTED_KEYS)
        if unknown:
            unknown_list = ", ".join(unknown)
            raise AutoConfigureError(f"Unknown configuration keys: {unknown_list}")

        return parsed
