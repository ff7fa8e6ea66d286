"""Command line entry point: ``python -m voting_service``."""
import argparse
import sys

import uvicorn

from . import __version__
from .config import Settings


def main(argv=None):
    parser = argparse.ArgumentParser(description="Run the voting service")
    parser.add_argument(
        "-v", "--version",
        action="store_true",
        help="print current version and exit"
    )
    parser.add_argument("--host", help="listening address (overrides HOST)")
    parser.add_argument("--port", type=int, help="listening port (overrides PORT)")
    args = parser.parse_args(argv)

    if args.version:
        print(__version__)
        return 0

    settings = Settings()
    uvicorn.run(
        "voting_service.main:create_app",
        factory=True,
        host=args.host if args.host is not None else settings.HOST,
        port=args.port if args.port is not None else settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
