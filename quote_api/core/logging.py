import logging
import sys
from typing import Optional

from .config import Settings, settings


LOG_FORMAT = (
    "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
)

# Client libraries that log full request lines at INFO
CHATTY_LOGGERS = ("httpx", "httpcore", "openai")


def resolve_level(config: Settings) -> int:
    if config.LOG_LEVEL:
        return logging.getLevelName(config.LOG_LEVEL)
    return logging.DEBUG if config.DEBUG else logging.INFO


def setup_logging(config: Optional[Settings] = None) -> None:
    config = config or settings
    level = resolve_level(config)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]

    # client libraries stay at WARNING unless DEBUG is on
    for name in CHATTY_LOGGERS:
        logging.getLogger(name).setLevel(level if config.DEBUG else max(level, logging.WARNING))
