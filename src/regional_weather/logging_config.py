"""Centralized logging configuration."""

import logging

from regional_weather.config import LOG_LEVEL


def configure_logging(level: str = LOG_LEVEL):
    """
    Configure a consistent logging format for the engine and the API server.
    """
    log_level = getattr(logging, level, logging.INFO)

    formatter = logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(log_level)

    # Remove any existing handlers
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    # Third-party loggers get the same format
    loggers_to_configure = [
        "uvicorn",
        "uvicorn.access",
        "uvicorn.error",
        "httpx",
        "fastapi",
    ]

    for logger_name in loggers_to_configure:
        logger = logging.getLogger(logger_name)
        # httpx logs every request at INFO, which is noise for a batch run
        logger.setLevel(logging.WARNING if logger_name == "httpx" else log_level)

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)

        # Don't propagate to avoid duplicate messages
        logger.propagate = False

        handler = logging.StreamHandler()
        handler.setLevel(log_level)
        handler.setFormatter(formatter)
        logger.addHandler(handler)
