"""Where the FTP relay keeps its settings file and log.

FTP_RELAY_HOME, when set, holds both. Otherwise settings go to the
platform config directory and the log to the platform state directory.
Nothing is created here; writers create parent directories themselves.
"""

import os
import sys
from pathlib import Path


APP_NAME = "ftp-relay"

# Overrides every platform default
HOME_ENV = "FTP_RELAY_HOME"


def _platform_dir(kind: str) -> Path:
    home = Path.home()
    if sys.platform == "win32":
        return Path(os.environ.get("APPDATA", home / "AppData" / "Roaming"))
    if sys.platform == "darwin":
        return home / "Library" / ("Logs" if kind == "state" else "Application Support")
    if kind == "state":
        return Path(os.environ.get("XDG_STATE_HOME", home / ".local" / "state"))
    return Path(os.environ.get("XDG_CONFIG_HOME", home / ".config"))


def get_config_dir() -> Path:
    """Directory holding settings.json."""
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override)
    return _platform_dir("config") / APP_NAME


def get_settings_path() -> Path:
    return get_config_dir() / "settings.json"


def get_log_file_path() -> Path:
    """
    Default log file.

    Linux: ~/.local/state/ftp-relay/proxy.log
    macOS: ~/Library/Logs/ftp-relay/proxy.log
    Windows: %APPDATA%/ftp-relay/logs/proxy.log
    """
    override = os.environ.get(HOME_ENV)
    if override:
        return Path(override) / "proxy.log"
    if sys.platform == "win32":
        return _platform_dir("state") / APP_NAME / "logs" / "proxy.log"
    return _platform_dir("state") / APP_NAME / "proxy.log"
