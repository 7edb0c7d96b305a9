"""
Well-known per-user locations used by the mod lifecycle engine.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass
from pathlib import Path

APP_NAME = "ModLifecycle"
APP_VERSION = (1, 5, 0)
MODS_DIR_NAME = "Mods"
SETTINGS_FILENAME = "modSettings.json"

# Sandboxed platforms keep the application in an isolated container whose path
# does not carry the application name.
SANDBOXED = sys.platform in ("ios",)


def _base_dir(env_var: str, xdg_var: str, xdg_default: str) -> Path:
    if sys.platform == "win32":
        return Path(os.environ.get(env_var) or os.environ.get("APPDATA") or "~").expanduser()
    return Path(os.environ.get(xdg_var) or xdg_default).expanduser()


@dataclass
class AppPaths:
    app_name: str
    data_dir: Path
    config_dir: Path

    @property
    def mods_dir(self) -> Path:
        return self.data_dir / MODS_DIR_NAME

    @property
    def settings_path(self) -> Path:
        return self.config_dir / SETTINGS_FILENAME

    @property
    def log_dir(self) -> Path:
        return self.data_dir / "logs"


def default_paths(app_name: str = APP_NAME) -> AppPaths:
    """Resolve data/config directories, honouring MODLC_DATA_DIR / MODLC_CONFIG_DIR."""
    data_override = os.environ.get("MODLC_DATA_DIR")
    config_override = os.environ.get("MODLC_CONFIG_DIR")

    if data_override:
        data_dir = Path(data_override).expanduser()
    else:
        data_dir = _base_dir("LOCALAPPDATA", "XDG_DATA_HOME", "~/.local/share") / app_name

    if config_override:
        config_dir = Path(config_override).expanduser()
    else:
        config_dir = _base_dir("APPDATA", "XDG_CONFIG_HOME", "~/.config") / app_name

    return AppPaths(app_name=app_name, data_dir=data_dir, config_dir=config_dir)
