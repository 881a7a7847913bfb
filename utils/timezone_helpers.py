from __future__ import annotations

from datetime import date, datetime
from typing import Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from flask import current_app, has_app_context

DEFAULT_CENTER_TZ = "Asia/Kolkata"


def center_zone(name: Optional[str] = None) -> ZoneInfo:
    """Resolve the configured center timezone, defaulting to India Standard Time."""
    try:
        return ZoneInfo(name or DEFAULT_CENTER_TZ)
    except (ZoneInfoNotFoundError, ValueError):
        if has_app_context():
            current_app.logger.warning(
                "Unknown CENTER_TIMEZONE %r; using %s for dates", name, DEFAULT_CENTER_TZ
            )
        return ZoneInfo(DEFAULT_CENTER_TZ)


def center_now(name: Optional[str] = None) -> datetime:
    return datetime.now(center_zone(name))


def center_today(name: Optional[str] = None) -> date:
    """Today's calendar date at the tuition center (used for leaving dates and defaults)."""
    return center_now(name).date()
