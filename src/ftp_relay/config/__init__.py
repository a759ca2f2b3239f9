"""Configuration module for the FTP relay.

This module handles proxy settings:
- SettingsManager: JSON-based settings persistence
- ProxySettings: Settings dataclass
- Paths: Config and log directory discovery
"""
