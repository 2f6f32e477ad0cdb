import logging
import logging.config
import os
from typing import Optional

DEFAULT_LEVEL = os.environ.get("MAZE_RL_LOG_LEVEL", "INFO")


def setup_logging(level: str = DEFAULT_LEVEL, package_level: Optional[str] = None):
    """Console logging for scripts; the library itself only emits records."""
    logging.config.dictConfig({
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(levelname)s - %(name)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "": {
                "level": level,
                "handlers": ["console"],
            },
            "maze_rl": {
                "level": package_level or level,
                "handlers": ["console"],
                "propagate": False,
            },
        }}
    )
