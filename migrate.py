#!/usr/bin/env python3
"""
Run Alembic against the selfecho schema.

Usage:
    python migrate.py upgrade head                  # Create or update mail_accounts / mail_messages
    python migrate.py downgrade -1                  # Step back one revision
    python migrate.py current                       # Show the applied revision
    python migrate.py revision -m "Description"     # New revision, autogenerated from the models
"""

import subprocess
import sys
from pathlib import Path

from dotenv import load_dotenv

load_dotenv(override=True)


def build_command(args: list[str]) -> list[str]:
    config_path = Path(__file__).parent / "migrations" / "alembic.ini"
    args = list(args)
    if args and args[0] == "revision" and "--autogenerate" not in args:
        args.insert(1, "--autogenerate")
    return [sys.executable, "-m", "alembic", "-c", str(config_path), *args]


def main() -> None:
    try:
        result = subprocess.run(build_command(sys.argv[1:]), check=False)
    except KeyboardInterrupt:
        print("\nOperation cancelled by user")
        sys.exit(1)
    sys.exit(result.returncode)


if __name__ == "__main__":
    if len(sys.argv) < 2:
        print(__doc__)
        sys.exit(1)

    main()
