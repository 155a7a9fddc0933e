"""Command-line entry point of the music server."""

from __future__ import annotations

import sys
from typing import Optional, Sequence

PROGRAM_NAME = "lightmusic"
_RULE = "=" * 42


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Start the server with the configuration file named on the command line."""
    args = list(sys.argv[1:] if argv is None else argv)

    print(_RULE)
    print("LMS - Lightweight Music Server")
    print(_RULE)
    print()

    if not args:
        print(f"Usage: {PROGRAM_NAME} <config file>")
        print(f"Example: {PROGRAM_NAME} conf/lms.conf")
        return 1

    config_file = args[0]
    print(f"Config file: {config_file}")
    print()
    print("LMS server starting...")
    return 0


if __name__ == "__main__":
    sys.exit(main())