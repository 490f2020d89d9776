import argparse
import logging

import uvicorn

from satsession.database import upgrade_db

log = logging.getLogger(__name__)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Run the SAT session API server.")
    parser.add_argument("--host", default="127.0.0.1")
    parser.add_argument("--port", type=int, default=8000)
    parser.add_argument("--reload", action="store_true", help="Restart on code changes")
    parser.add_argument(
        "--skip-migrations",
        action="store_true",
        help="Do not apply database migrations before starting",
    )
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    if not args.skip_migrations:
        upgrade_db()
        log.info("Database migrations applied")

    uvicorn.run(
        "satsession.app:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()
