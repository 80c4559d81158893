# src/log_config.py

import logging
import logging.config
from typing import Any, Dict, Union

LOGGING_CONFIG: Dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "verbose": {
            "format": "%(asctime)s | %(levelname)-8s | %(name)s | %(funcName)s:%(lineno)d | %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "verbose",
            "level": "DEBUG",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": "INFO",
    },
    "loggers": {
        # PaddleOCR is very chatty at INFO
        "ppocr": {"level": "ERROR"},
    },
}


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configure process-wide logging for the CLI and tools."""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO

    config = dict(LOGGING_CONFIG)
    config["root"] = dict(LOGGING_CONFIG["root"], level=logging.getLevelName(level))
    logging.config.dictConfig(config)
    logging.getLogger(__name__).debug("Logging configured (level=%s)", logging.getLevelName(level))
