import logging

from partsource.config import settings

LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"


def configure_logging() -> None:
    """Attach a single stdout handler to the root logger.

    Handlers installed earlier (uvicorn, previous calls) are removed so the
    level from LOG_LEVEL applies uniformly.
    """
    level_name = settings.log_level or "INFO"
    level = getattr(logging, level_name.upper(), logging.INFO)

    root_logger = logging.getLogger()
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
    root_logger.setLevel(level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root_logger.addHandler(console_handler)

    # SQL echo goes through this logger when DATABASE_ECHO is set
    logging.getLogger("sqlalchemy.engine").setLevel(
        logging.INFO if settings.database_echo else logging.WARNING
    )
    root_logger.debug("Logging configured (level=%s)", level_name)
