"""Proxy settings management for the FTP relay.

ProxySettings holds everything the listener and its sessions are tuned
by; SettingsManager persists it as JSON. Values are validated on
construction, so an invalid ProxySettings never exists.
"""

import json
import logging
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from ftp_relay.config.paths import get_settings_path
from ftp_relay.utils.validators import (
    validate_count,
    validate_host,
    validate_port,
    validate_seconds,
)


logger = logging.getLogger(__name__)


@dataclass
class ProxySettings:
    """Runtime settings for the proxy listener and its sessions."""

    # Listening socket; port 0 lets the OS pick one
    listen_host: str = "127.0.0.1"
    listen_port: int = 0
    backlog: int = 5

    # Upstream FTP control port
    upstream_port: int = 21

    # Idle timeout on the server-side data connection
    data_timeout: float = 5.0

    # Control-channel read timeout, None blocks indefinitely
    control_timeout: Optional[float] = None

    max_line_length: int = 1024
    chunk_size: int = 1024
    max_sessions: int = 16

    def __post_init__(self):
        """Validate settings after initialization."""
        checks = [
            validate_host(self.listen_host, "listen_host"),
            validate_port(self.listen_port, "listen_port", allow_zero=True),
            validate_count(self.backlog, "backlog"),
            validate_port(self.upstream_port, "upstream_port"),
            validate_seconds(self.data_timeout, "data_timeout"),
            validate_count(self.max_line_length, "max_line_length"),
            validate_count(self.chunk_size, "chunk_size"),
            validate_count(self.max_sessions, "max_sessions"),
        ]
        if self.control_timeout is not None:
            checks.append(validate_seconds(self.control_timeout, "control_timeout"))

        for is_valid, error in checks:
            if not is_valid:
                raise ValueError(error)

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "ProxySettings":
        """
        Build settings from a mapping such as a parsed settings file.

        Keys that are not settings are logged and skipped; missing keys
        keep their defaults.

        Raises:
            TypeError: If data is not a mapping
            ValueError: If a value fails validation
        """
        if not isinstance(data, Mapping):
            raise TypeError(f"Settings must be a JSON object, got {type(data).__name__}")

        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            logger.warning("Ignoring unknown settings: %s", ", ".join(unknown))
        return cls(**{k: v for k, v in data.items() if k in known})


class SettingsManager:
    """Reads and writes ProxySettings as a JSON file."""

    def __init__(self, config_path: Optional[Path] = None):
        """
        Args:
            config_path: Settings file, defaults to paths.get_settings_path()
        """
        self._config_path = config_path or get_settings_path()

    @property
    def config_path(self) -> Path:
        return self._config_path

    def load(self) -> ProxySettings:
        """
        Read the settings file.

        A missing file gives defaults silently. An unreadable, malformed
        or invalid file gives defaults with a warning, so a bad file never
        keeps the proxy from starting.
        """
        path = self._config_path
        if not path.exists():
            logger.debug("No settings file at %s, using defaults", path)
            return ProxySettings()

        try:
            settings = ProxySettings.from_dict(json.loads(path.read_text(encoding="utf-8")))
        except (OSError, TypeError, ValueError) as e:
            logger.warning("Ignoring settings file %s: %s", path, e)
            return ProxySettings()

        logger.info("Loaded settings from %s", path)
        return settings

    def save(self, settings: ProxySettings) -> None:
        """
        Write settings, replacing the file atomically.

        Raises:
            OSError: If the file cannot be written
        """
        path = self._config_path
        path.parent.mkdir(parents=True, exist_ok=True)

        staging = path.with_name(path.name + ".tmp")
        staging.write_text(json.dumps(settings.to_dict(), indent=2) + "\n", encoding="utf-8")
        staging.replace(path)
