import logging.config

from .config import settings


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "standard": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            },
        },
        "handlers": {
            "default": {
                "level": level,
                "formatter": "standard",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
            },
        },
        "loggers": {
            "": {
                "handlers": ["default"],
                "level": level,
                "propagate": True,
            },
            # Model downloads and HTTP clients are chatty at INFO.
            "transformers": {"level": "WARNING", "propagate": True},
            "httpx": {"level": "WARNING", "propagate": True},
            "openai": {"level": "WARNING", "propagate": True},
            "PyPDF2": {"level": "ERROR", "propagate": True},
        },
    }


def setup_logging(level: str | None = None):
    """Configure logging for the application"""
    logging.config.dictConfig(build_logging_config((level or settings.log_level).upper()))
