"""
Utility functions for the inbox API.
"""

import math
from datetime import datetime, timezone

TIMESTAMP_FORMAT = "%Y-%m-%dT%H:%M:%S"


def utc_now() -> datetime:
    """Current UTC time as a naive datetime, truncated to whole seconds."""
    return datetime.now(timezone.utc).replace(tzinfo=None, microsecond=0)


def format_timestamp(value: datetime) -> str:
    """
    Format a datetime as ISO-8601 with second precision and no offset.

    Example: 2025-10-17T16:05:36
    """
    return value.strftime(TIMESTAMP_FORMAT)


def count_pages(total_elements: int, page_size: int) -> int:
    """Number of pages needed to show total_elements; 0 for an empty result."""
    if total_elements <= 0:
        return 0
    return math.ceil(total_elements / page_size)
