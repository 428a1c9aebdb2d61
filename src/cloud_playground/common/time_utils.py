"""
UTC time utilities. Instance timestamps are whole seconds since the Unix epoch.
"""

import datetime


def utc_now() -> datetime.datetime:
    """
    Return current time in UTC (timezone-aware).

    Returns:
        Current UTC time as a timezone-aware datetime.
    """
    return datetime.datetime.now(datetime.timezone.utc)


def epoch_now() -> int:
    """
    Return the current time as whole seconds since the Unix epoch.

    Returns:
        Seconds since the epoch, truncated toward zero.
    """
    return int(utc_now().timestamp())


def epoch_to_utc(seconds: int) -> datetime.datetime:
    """
    Convert seconds since the Unix epoch to a UTC datetime.

    Parameters:
        seconds: Seconds since the epoch.

    Returns:
        UTC timezone-aware datetime.
    """
    return datetime.datetime.fromtimestamp(seconds, tz=datetime.timezone.utc)
