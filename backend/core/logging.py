import logging

from .config import Settings


def setup_logging(settings: Settings) -> None:
    """Configure process-wide logging based on settings.

    The format includes timestamp, log level, logger name, and message.
    """
    log_level_name = settings.log_level.upper()
    level = getattr(logging, log_level_name, logging.INFO)

    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)s | %(name)s | %(message)s",
    )

    # Request-level chatter from the HTTP stack stays quiet unless debugging.
    http_level = level if level <= logging.DEBUG else logging.WARNING
    for logger_name in ("httpx", "httpcore"):
        logging.getLogger(logger_name).setLevel(http_level)
