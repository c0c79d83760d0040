"""
Constellation Server CLI
Command-line interface for starting the constellation server
"""

import argparse
import logging

import uvicorn

from constellation.config.settings import settings

logger = logging.getLogger(__name__)


def main():
    """Main CLI entry point"""
    parser = argparse.ArgumentParser(description="Thought Constellation Server")
    parser.add_argument("--host", default=settings.HOST, help=f"Host to bind (default: {settings.HOST})")
    parser.add_argument("--port", type=int, default=settings.PORT, help=f"Port to bind (default: {settings.PORT})")
    parser.add_argument("--reload", action="store_true", help="Enable auto-reload")
    parser.add_argument(
        "--log-level",
        default=settings.LOG_LEVEL.lower(),
        choices=["debug", "info", "warning", "error"],
        help="Log level",
    )

    args = parser.parse_args()

    logging.basicConfig(level=args.log_level.upper(), format=settings.LOG_FORMAT)
    logger.info(f"Starting constellation server on {args.host}:{args.port}")

    uvicorn.run(
        "constellation.app_factory:app",
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level=args.log_level
    )


if __name__ == "__main__":
    main()
