import logging
import sys
import structlog
from admonitor.config import LOG_LEVEL, LOG_FILE


def setup_logging(level: str = LOG_LEVEL):
    """Configure structured logging for the application."""
    log_level = getattr(logging, level.upper(), logging.INFO)

    LOG_FILE.parent.mkdir(parents=True, exist_ok=True)

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=log_level,
    )

    file_handler = logging.FileHandler(LOG_FILE)
    file_handler.setLevel(log_level)
    logging.getLogger().addHandler(file_handler)

    # structlog routes through stdlib so events reach both stdout and the log file
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer() if sys.stdout.isatty() else structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(log_level),
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str = None):
    """Get a structured logger instance."""
    return structlog.get_logger(name)


def bind_brand(brand_id: int, brand_name: str = None):
    """Attach brand context to every log event of the current cycle."""
    structlog.contextvars.bind_contextvars(brand_id=brand_id, brand_name=brand_name)


def clear_brand():
    structlog.contextvars.unbind_contextvars("brand_id", "brand_name")


# Initialize logging on import
setup_logging()
logger = get_logger("admonitor")
