"""Command-line entry point for the FTP relay.

Loads settings, applies command-line overrides, sets up logging and
runs the listener until interrupted.
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from ftp_relay import __version__
from ftp_relay.config.paths import get_log_file_path
from ftp_relay.config.settings import ProxySettings, SettingsManager
from ftp_relay.proxy.listener import ProxyServer
from ftp_relay.utils.logging import setup_logging


def build_parser() -> argparse.ArgumentParser:
    """Create the argument parser."""
    parser = argparse.ArgumentParser(
        prog="ftp-relay",
        description="FTP proxy translating client active mode to upstream passive mode.",
    )
    parser.add_argument("--config", type=Path, help="Settings JSON file")
    parser.add_argument("--listen-host", help="Address to listen on")
    parser.add_argument("--listen-port", type=int, help="Port to listen on (0 = any free port)")
    parser.add_argument("--upstream-port", type=int, help="Control port of upstream servers")
    parser.add_argument("--data-timeout", type=float, help="Idle timeout on server data connections, in seconds")
    parser.add_argument("--max-sessions", type=int, help="Maximum concurrent sessions")
    parser.add_argument("--log-file", type=Path, help="Log file path")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log every relayed control line")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    return parser


def resolve_settings(args: argparse.Namespace) -> ProxySettings:
    """
    Merge the settings file with command-line overrides.

    Raises:
        ValueError: If a resulting value is invalid
    """
    settings = SettingsManager(config_path=args.config).load()

    overrides = {
        "listen_host": args.listen_host,
        "listen_port": args.listen_port,
        "upstream_port": args.upstream_port,
        "data_timeout": args.data_timeout,
        "max_sessions": args.max_sessions,
    }
    data = settings.to_dict()
    data.update({k: v for k, v in overrides.items() if v is not None})
    return ProxySettings.from_dict(data)


def main(argv: Optional[List[str]] = None) -> int:
    """
    Application entry point.

    Returns:
        Exit code (0 for success)
    """
    args = build_parser().parse_args(argv)

    try:
        settings = resolve_settings(args)
        logger = setup_logging(
            level=logging.DEBUG if args.verbose else logging.INFO,
            log_file=args.log_file or get_log_file_path(),
        )
        server = ProxyServer(settings)
        server.start()
    except (ValueError, OSError) as e:
        print(f"Fatal error: {e}", file=sys.stderr)
        return 1

    logger.info("ftp-relay %s started", __version__)
    try:
        server.serve_forever()
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        server.stop()
    return 0


if __name__ == "__main__":
    sys.exit(main())
