"""Logging setup for the rapport logger hierarchy."""

import logging
import os
import sys

from pydantic import BaseModel, Field

ROOT_LOGGER = "rapport"


class LogConfig(BaseModel):
    """Logging configuration.

    ``level`` applies to everything under the ``rapport`` logger. The root
    logger stays at ``library_level`` so dependencies only report problems,
    and the loggers in ``quiet`` are held at WARNING even when the root is
    more verbose.
    """

    level: str = "INFO"
    library_level: str = "WARNING"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    date_format: str = "%Y-%m-%d %H:%M:%S"
    quiet: list[str] = Field(default_factory=lambda: ["httpx", "httpcore", "uvicorn.access"])

    @classmethod
    def from_env(cls) -> "LogConfig":
        """Read LOG_LEVEL and LIBRARY_LOG_LEVEL."""
        return cls(
            level=os.getenv("LOG_LEVEL", "INFO"),
            library_level=os.getenv("LIBRARY_LOG_LEVEL", "WARNING"),
        )


def setup_logging(config: LogConfig | None = None) -> None:
    """Configure stdout logging for the service."""
    if config is None:
        config = LogConfig.from_env()

    logging.basicConfig(
        level=config.library_level.upper(),
        format=config.format,
        datefmt=config.date_format,
        stream=sys.stdout,
        force=True,
    )
    logging.getLogger(ROOT_LOGGER).setLevel(config.level.upper())

    # Provider traffic is logged by the transport itself
    for name in config.quiet:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    """Get a logger inside the rapport hierarchy.

    Module names (``__name__``) of the package are used as they are; any other
    name, such as a script's ``__main__``, is placed under ``rapport`` so that
    one level setting covers it.
    """
    if name != ROOT_LOGGER and not name.startswith(f"{ROOT_LOGGER}."):
        name = f"{ROOT_LOGGER}.{name}"
    return logging.getLogger(name)
