"""Module entry point: `python -m vboxvm`."""

import sys

from vboxvm import cli

if __name__ == "__main__":
    sys.exit(cli.main())
