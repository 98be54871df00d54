"""Logging setup and Logfire cloud observability."""

import logging
from logging.config import dictConfig

import logfire

from docrepo import __version__
from docrepo.config import Settings

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    """Configure the root logger with the standard console format."""
    dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "standard": {
                    "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                    "datefmt": "%Y-%m-%d %H:%M:%S",
                }
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": "standard",
                }
            },
            "root": {"level": level, "handlers": ["console"]},
        }
    )


def initialize_logfire(settings: Settings) -> bool:
    """
    Initialize Logfire and instrument the MongoDB driver.

    Call once at application startup, before any repository is used.

    This function configures Logfire cloud tracking and instruments:
    - PyMongo (every command Motor sends, as spans)
    - Python logging (bridges to Logfire)

    Args:
        settings: Application settings containing the Logfire token

    Returns:
        True if Logfire was configured, False if it was skipped or failed.
    """
    if not settings.logfire_token:
        logger.warning("Logfire token not set - observability disabled")
        return False

    try:
        logfire.configure(
            token=settings.logfire_token,
            service_name="docrepo",
            service_version=__version__,
        )

        logfire.instrument_pymongo()

        # Bridge Python logging to Logfire
        root_logger = logging.getLogger()
        root_logger.addHandler(logfire.LogfireLoggingHandler())

        logger.info("Logfire cloud tracking initialized")
        return True

    except Exception as e:
        # Observability is optional; repositories keep working without it
        logger.warning(f"Failed to initialize Logfire: {e}")
        return False
