"""Operational logging configuration for the service process."""

import logging
import sys

_NOISY_LOGGERS = ("httpx", "httpcore", "botocore", "boto3", "urllib3")


def config_configure_logging(log_level: str = "INFO") -> None:
    """Install one stdout handler on the root logger.

    Args:
        log_level: Root log level name.

    Returns:
        None: Logging is configured as a side effect.

    Raises:
        ValueError: Raised when the level name is unknown.
    """

    level = logging.getLevelName(log_level.strip().upper())
    if not isinstance(level, int):
        raise ValueError(f"unsupported log_level={log_level}")

    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(
        logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )
    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for logger_name in _NOISY_LOGGERS:
        logging.getLogger(logger_name).setLevel(logging.WARNING)
