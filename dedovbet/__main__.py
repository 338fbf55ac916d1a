"""
Run the API:
    python -m dedovbet [--host 127.0.0.1] [--port 3000] [--users-file users.json]
"""

from __future__ import annotations

import argparse
import os

import uvicorn


def parse_args(argv=None):
    p = argparse.ArgumentParser(prog="dedovbet", description="Run the DedovBet API")
    p.add_argument("--host", default=None, help="bind address (default from settings)")
    p.add_argument("--port", type=int, default=None, help="port (default from settings)")
    p.add_argument("--users-file", default=None, help="path to the JSON users file")
    return p.parse_args(argv)


def main(argv=None) -> None:
    args = parse_args(argv)
    if args.users_file:
        # Must be set before the settings are first read.
        os.environ["DEDOVBET_USERS_FILE"] = args.users_file

    from .core.config import get_settings

    settings = get_settings()
    uvicorn.run(
        "dedovbet.main:app",
        host=args.host or settings.host,
        port=args.port or settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
