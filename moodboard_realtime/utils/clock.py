"""Clock helpers shared by the presence tracker and event builders."""

from datetime import datetime, timezone
from typing import Callable

# Any zero-argument callable returning an aware datetime
Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Get the current time in UTC."""
    return datetime.now(timezone.utc)


def isoformat(moment: datetime) -> str:
    """
    Render a timestamp the way browser clients expect it.

    Args:
        moment: An aware datetime

    Returns:
        ISO-8601 string with millisecond precision and a trailing 'Z'
    """
    return moment.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")
