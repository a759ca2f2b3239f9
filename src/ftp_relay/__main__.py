"""Allow running the proxy with python -m ftp_relay."""

import sys

from ftp_relay.main import main


sys.exit(main())
