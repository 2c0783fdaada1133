"""Logging setup and Logfire instrumentation."""

import logging

import logfire

from . import __version__
from .config import Settings

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def configure_logging(settings: Settings) -> None:
    """Configure root logging at the configured level; PyMongo stays at WARNING."""
    logging.basicConfig(
        level=settings.log_level,
        format=LOG_FORMAT,
        datefmt=LOG_DATE_FORMAT,
    )
    logging.getLogger("pymongo").setLevel(logging.WARNING)


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Call once at application startup, before repositories are used.

    This function configures Logfire cloud tracking and instruments:
    - PyMongo commands issued by Motor (spans per find/insert/update/delete)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing Logfire token

    Returns:
        True when Logfire was configured. Failures are logged, never raised.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="mongorepo",
            service_version=__version__,
            environment=settings.environment,
        )

        logfire.instrument_pymongo()

        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire cloud tracking initialized")
        return True

    except Exception as e:
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
