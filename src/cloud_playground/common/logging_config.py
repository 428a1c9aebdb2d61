"""
Logging configuration with millisecond timestamps.
"""
import datetime
import logging
from typing import Iterable, Optional

# Vendor SDK loggers that are very chatty at INFO and DEBUG
LIBRARY_LOGGERS = (
    "asyncio",
    "urllib3",
    "boto3",
    "botocore",
    "google",
    "google.auth",
    "google.cloud",
    "azure",
    "azure.core.pipeline.policies.http_logging_policy",
    "aiohttp",
    "oci",
)


class MicrosecondFormatter(logging.Formatter):
    """
    A formatter that supports %f in datefmt and truncates it to milliseconds.
    The standard logging.Formatter passes datefmt to time.strftime, which has no %f.
    """

    def formatTime(self, record, datefmt=None):
        ct = datetime.datetime.fromtimestamp(record.created)
        if not datefmt:
            # Truncate to milliseconds (3 digits)
            return ct.strftime("%Y-%m-%d %H:%M:%S.%f")[:-3]
        if ".%f" not in datefmt:
            return ct.strftime(datefmt)
        before, _, after = datefmt.partition(".%f")
        millis = ct.strftime("%f")[:3]
        return f"{ct.strftime(before)}.{millis}{ct.strftime(after) if after else ''}"


def configure_logging(
    level: int = logging.INFO,
    library_level: int = logging.WARNING,
    libraries: Optional[Iterable[str]] = None,
) -> logging.Logger:
    """
    Configure the root logger and quiet the cloud SDK loggers.

    Args:
        level: Logging level for the root logger (default: INFO)
        library_level: Logging level for vendor SDK loggers (default: WARNING)
        libraries: Logger names to set to library_level; defaults to LIBRARY_LOGGERS

    Returns:
        The root logger
    """
    formatter = MicrosecondFormatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S.%f",
    )

    root_logger = logging.getLogger()
    root_logger.setLevel(level)

    # Clear existing handlers to avoid duplicates if called multiple times
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    root_logger.addHandler(console_handler)

    for name in LIBRARY_LOGGERS if libraries is None else libraries:
        logging.getLogger(name).setLevel(library_level)

    return root_logger
