"""Pickup slots: the candidate handover times offered when reserving."""

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, timezone
from typing import Optional, List
from zoneinfo import ZoneInfo

DEFAULT_TIMEZONE = "Europe/Zurich"
DEFAULT_DAYS_AHEAD = 7

WEEKDAY_SLOTS = ("17:00-18:00", "18:00-19:00")
WEEKEND_SLOTS = ("10:00-11:00", "11:00-12:00", "14:00-15:00", "15:00-16:00")

WEEKDAY_NAMES = ("Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag")
MONTH_ABBREVIATIONS = (
    "Jan.", "Feb.", "März", "Apr.", "Mai", "Juni",
    "Juli", "Aug.", "Sept.", "Okt.", "Nov.", "Dez.",
)


@dataclass(frozen=True)
class PickupSlot:
    start: datetime  # aware, UTC
    label: str

    @property
    def value(self) -> str:
        return self.start.isoformat().replace("+00:00", "Z")


class PickupSlotService:
    def __init__(self, tz: str = DEFAULT_TIMEZONE, days_ahead: int = DEFAULT_DAYS_AHEAD):
        self.tz = ZoneInfo(tz)
        self.days_ahead = days_ahead

    def list_slots(self, now: Optional[datetime] = None) -> List[PickupSlot]:
        """
        Slots for today and the following days, in schedule order.
        Slots starting at or before `now` are left out.
        Naive `now` is read as UTC.
        """
        if now is None:
            now = datetime.now(timezone.utc)
        elif now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)
        today = now.astimezone(self.tz).date()

        slots = []
        for offset in range(self.days_ahead):
            day = today + timedelta(days=offset)
            for window in self._windows_for(day):
                start_local = datetime.combine(day, _parse_hhmm(window.split("-")[0]), tzinfo=self.tz)
                if start_local <= now:
                    continue
                slots.append(PickupSlot(
                    start=start_local.astimezone(timezone.utc),
                    label=f"{format_day(day)}, {window}",
                ))
        return slots

    @staticmethod
    def _windows_for(day: date) -> tuple:
        return WEEKEND_SLOTS if day.weekday() >= 5 else WEEKDAY_SLOTS


def _parse_hhmm(value: str) -> time:
    hours, minutes = map(int, value.split(":"))
    return time(hours, minutes)


def format_day(day: date) -> str:
    """'Samstag, 1. Nov.'"""
    return f"{WEEKDAY_NAMES[day.weekday()]}, {day.day}. {MONTH_ABBREVIATIONS[day.month - 1]}"
