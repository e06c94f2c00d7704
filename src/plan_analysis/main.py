"""Server entry point."""

import argparse
import logging
import sys

from plan_analysis.config import Settings
from plan_analysis.logging import configure_logging, get_logger

logger = get_logger(__name__)


def main() -> None:
    """Start the plan analysis web server."""
    parser = argparse.ArgumentParser(
        description="Plan Analysis - floor-plan fire-safety analysis service"
    )
    parser.add_argument("--host", default=None, help="Override PLAN_ANALYSIS_WEB_HOST")
    parser.add_argument("--port", type=int, default=None, help="Override PLAN_ANALYSIS_WEB_PORT")
    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug-level logging for troubleshooting",
    )
    args = parser.parse_args()

    try:
        settings = Settings()
    except Exception as e:
        configure_logging()
        logger.error("failed_to_load_settings", error=str(e))
        print(f"Error: Failed to load settings. {e}")
        print("Set PLAN_ANALYSIS_* environment variables or add them to a .env file.")
        sys.exit(1)

    level = logging.DEBUG if args.debug else logging.INFO
    configure_logging(json_output=settings.json_logs, level=level)

    import uvicorn

    from plan_analysis.web.app import create_app

    app = create_app(settings, log_level=level)
    uvicorn.run(
        app,
        host=args.host or settings.web_host,
        port=args.port or settings.web_port,
        log_level="debug" if args.debug else "info",
    )


if __name__ == "__main__":
    main()
