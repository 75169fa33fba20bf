"""
Portfolio Admin - Content Synchronization Console
=================================================

Main entry point for the headless admin console. It loads the saved session,
connects to the portfolio Content API and performs a full dashboard load,
reporting how many entities of each kind the backend holds.

The application can work with:
- The portfolio backend Content API (projects, blogs, experience, quotes,
  skills, resumes, contact messages, analytics)
- A media host account with an unsigned upload preset (image uploads)

Author: Portfolio Admin Project
"""

import argparse
import asyncio
import logging
import sys

# ============================================================================
# LOGGING INITIALIZATION
# ============================================================================
# Logging is configured in main() before the dashboard is built so every
# module that logs during startup is captured.
from portfolio_admin.core.dashboard import DashboardOrchestrator
from portfolio_admin.core.session import AdminSession
from portfolio_admin.core.uploads import UploadOrchestrator
from portfolio_admin.utils.config_manager import load_config, save_config
from portfolio_admin.utils.logger import setup_logging, shutdown_logging


def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronize and inspect portfolio content.")
    parser.add_argument("--api-url", help="Content API root, e.g. https://example.com/api")
    parser.add_argument(
        "--log-level",
        default="INFO",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Console log level (the log file always records DEBUG)",
    )
    parser.add_argument("--no-save", action="store_true", help="Do not persist the session on exit")
    return parser.parse_args(argv)


async def run_sync(session: AdminSession) -> int:
    """Load the dashboard once and report collection sizes. Returns an exit code."""
    logger = logging.getLogger(__name__)
    api = session.create_api()
    uploader = UploadOrchestrator(session.create_media_host(), retry_policy=session.retry.to_policy())
    dashboard = DashboardOrchestrator(api, uploader, retry_policy=session.retry.to_policy())

    try:
        state = await dashboard.load()
        if state.error:
            logger.error(f"Dashboard load failed: {state.error}")
            return 1

        analytics = state.analytics
        logger.info(
            f"Analytics: {analytics.get('totalVisits', 0)} visits, "
            f"{analytics.get('uniqueVisitors', 0)} unique visitors"
        )
        for kind, collection in state.collections.items():
            logger.info(f"{kind}: {len(collection)} item(s)")
        return 0
    finally:
        dashboard.close()
        uploader.close()
        api.close()


def main(argv=None):
    """
    Main application entry point.

    This function:
    1. Initializes logging
    2. Loads the saved session and applies command line overrides
    3. Runs one dashboard load against the Content API
    4. Saves the session and shuts logging down
    """
    args = parse_args(argv)
    setup_logging(console_level=getattr(logging, args.log_level))
    logger = logging.getLogger(__name__)
    exit_code = 1

    try:
        logger.info("Initializing Portfolio Admin")
        logger.info(f"Python version: {sys.version}")

        session = AdminSession()
        load_config(session)
        if args.api_url:
            session.api.base_url = args.api_url.strip()

        exit_code = asyncio.run(run_sync(session))

        if not args.no_save:
            save_config(session)

    except Exception as e:
        logger.critical(f"Fatal error in main application: {e}", exc_info=True)
        raise
    finally:
        logger.info("Application shutdown")
        shutdown_logging()

    sys.exit(exit_code)


# ============================================================================
# APPLICATION ENTRY POINT
# ============================================================================
if __name__ == "__main__":
    main()
