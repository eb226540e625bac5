"""
Timezone utilities for the studio booking engine.

All booking timestamps are stored as naive wall-clock time in the studio's
timezone. These helpers produce "now" in that representation.
"""

from datetime import datetime
from typing import Optional

import pytz

from .config import settings


def get_studio_timezone(tz_name: Optional[str] = None) -> pytz.BaseTzInfo:
    """
    Get the studio timezone.

    Args:
        tz_name: Optional override, defaults to the configured timezone

    Returns:
        pytz timezone object
    """
    return pytz.timezone(tz_name or settings.timezone)


def get_studio_now(tz_name: Optional[str] = None) -> datetime:
    """
    Get current wall-clock time in the studio timezone.

    Returns:
        Naive datetime comparable with stored booking timestamps
    """
    studio_tz = get_studio_timezone(tz_name)
    return datetime.now(studio_tz).replace(tzinfo=None)

