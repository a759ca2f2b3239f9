"""FTP relay: an FTP proxy bridging client active mode to upstream passive mode.

Subpackages:
- proxy: Session relay, address parsing, data bridge and listener
- config: Settings and path discovery
- utils: Logging, validators and background task helpers
"""

__version__ = "1.0.0"
