"""
promosync Main Application Entry Point
"""
import argparse
import sys

# Initialize logging first
from promosync.system.logging_config import setup_logging, get_logger

# Setup logging before importing other modules
setup_logging()

from promosync.config.settings import settings

logger = get_logger(__name__, service_name="main")


def run_once() -> bool:
    """Run a single full sync against the configured database and exit."""
    from promosync.app import build_engine

    engine = build_engine(settings)
    try:
        report = engine.orchestrator.run_all()
    finally:
        engine.close()

    for result in report.results:
        logger.info(result.summary())
    if not report.success:
        logger.error(
            f"Sync finished with problems: "
            f"{report.configuration_error or report.error or ', '.join(report.failed_entities)}"
        )
    return report.success


def main() -> bool:
    """Main application entry point"""
    parser = argparse.ArgumentParser(description="promosync content synchronization engine")
    parser.add_argument("--once", action="store_true", help="run one full sync and exit")
    parser.add_argument("--host", default="0.0.0.0")
    parser.add_argument("--port", type=int, default=8000)
    args = parser.parse_args()

    logger.info(f"Initializing {settings.app.app_name} v{settings.app.app_version}")

    if args.once:
        return run_once()

    import uvicorn

    uvicorn.run("promosync.app:app", host=args.host, port=args.port, log_level=settings.app.log_level.lower())
    return True


if __name__ == "__main__":
    success = main()
    if not success:
        sys.exit(1)
