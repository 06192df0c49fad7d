"""Logging configuration."""

import logging
import os

from pydantic import BaseModel
from rich.console import Console
from rich.logging import RichHandler

NOISY_LOGGERS = ("anthropic", "httpx", "httpcore")


class LogConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    rich: bool = False


def setup_logging(config: LogConfig | None = None) -> None:
    """Set up logging for a chat session.

    Records always go to stderr so they never interleave with the
    conversation printed on stdout. With ``rich`` enabled they are rendered
    by a RichHandler on a stderr console.
    """
    if config is None:
        config = LogConfig()

    if config.rich:
        handler: logging.Handler = RichHandler(console=Console(stderr=True), show_path=False)
        log_format = "%(message)s"
    else:
        handler = logging.StreamHandler()
        log_format = config.format

    logging.basicConfig(
        level=config.level.upper(),
        format=log_format,
        datefmt=config.date_format,
        handlers=[handler],
        force=True,
    )

    # Provider SDKs and the HTTP stack are chatty at INFO
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str, level: str | None = None) -> logging.Logger:
    """Get a logger for a specific module.

    Args:
        name: Module name (typically __name__)
        level: Explicit level, otherwise CMSAI_LOG_LEVEL, LOG_LEVEL or INFO

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    log_level = level or os.getenv("CMSAI_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    logger.setLevel(log_level.upper())

    return logger
