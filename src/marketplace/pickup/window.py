"""Pickup window rules for offline orders.

A requested slot is checked against four rules, in order, and the first one
it breaks is reported:

1. it must be in the future,
2. at least the minimum lead time ahead (2 hours by default),
3. not on the store's closed weekday (Sunday by default),
4. inside business hours (09:00 to 20:00 store-local by default).

The store's clock is the configured timezone. Naive datetimes are read as
store-local time.
"""

import calendar
import os
from dataclasses import dataclass
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

from marketplace.shared.errors import InvalidSchedulingWindow

RULE_FUTURE = "future"
RULE_MIN_LEAD_TIME = "min_lead_time"
RULE_CLOSED_DAY = "closed_day"
RULE_BUSINESS_HOURS = "business_hours"


@dataclass(frozen=True)
class PickupWindow:
    timezone: str = "Asia/Kolkata"
    open_hour: int = 9
    close_hour: int = 20
    closed_weekday: int = 6  # Monday is 0
    min_lead: timedelta = timedelta(hours=2)

    @classmethod
    def from_env(cls):
        return cls(
            timezone=os.environ.get("PICKUP_TIMEZONE", cls.timezone),
            open_hour=int(os.environ.get("PICKUP_OPEN_HOUR", cls.open_hour)),
            close_hour=int(os.environ.get("PICKUP_CLOSE_HOUR", cls.close_hour)),
            closed_weekday=int(os.environ.get("PICKUP_CLOSED_WEEKDAY", cls.closed_weekday)),
            min_lead=timedelta(hours=float(os.environ.get("PICKUP_MIN_LEAD_HOURS", 2))),
        )

    @property
    def tz(self):
        return ZoneInfo(self.timezone)

    def localize(self, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=self.tz)
        return value.astimezone(self.tz)


def validate_pickup_slot(requested_at: datetime, now: datetime | None = None, window: PickupWindow | None = None) -> datetime:
    """Return the slot as an aware store-local datetime, or raise ``InvalidSchedulingWindow``."""
    window = window or PickupWindow.from_env()
    requested = window.localize(requested_at)
    now = window.localize(now) if now else datetime.now(window.tz)

    if requested <= now:
        raise InvalidSchedulingWindow(RULE_FUTURE, "Pickup time must be in the future")

    if requested - now < window.min_lead:
        hours = window.min_lead.total_seconds() / 3600
        raise InvalidSchedulingWindow(
            RULE_MIN_LEAD_TIME,
            f"Pickup must be scheduled at least {hours:g} hours in advance",
        )

    if requested.weekday() == window.closed_weekday:
        raise InvalidSchedulingWindow(
            RULE_CLOSED_DAY,
            f"Store is closed on {calendar.day_name[window.closed_weekday]}s",
        )

    if not window.open_hour <= requested.hour < window.close_hour:
        raise InvalidSchedulingWindow(
            RULE_BUSINESS_HOURS,
            f"Pickup must be between {window.open_hour:02d}:00 and {window.close_hour:02d}:00",
        )

    return requested
