"""Date range selectors shared by the dashboard, reports, and CLI."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from typing import Any, Optional

from dateutil import parser as date_parser
from dateutil import tz as date_tz

LOGGER = logging.getLogger(__name__)

_END_OF_DAY = time(23, 59, 59, 999000)


class RangeKind(str, Enum):
    LAST_7_DAYS = "last7days"
    THIS_MONTH = "thisMonth"
    ALL = "all"
    CUSTOM = "custom"


_ALIASES = {
    "last7days": RangeKind.LAST_7_DAYS,
    "7days": RangeKind.LAST_7_DAYS,
    "7d": RangeKind.LAST_7_DAYS,
    "thismonth": RangeKind.THIS_MONTH,
    "month": RangeKind.THIS_MONTH,
    "all": RangeKind.ALL,
}


def local_timezone() -> tzinfo:
    return date_tz.tzlocal()


def parse_timestamp(value: Any, *, tz: Optional[tzinfo] = None) -> Optional[datetime]:
    """Parse an ISO-8601 string, date, or datetime into an aware datetime.

    Naive values and date-only strings are interpreted in ``tz`` (the local
    timezone by default). Empty or unparseable values yield ``None``.
    """

    if value is None or value == "":
        return None
    zone = tz or local_timezone()
    if isinstance(value, datetime):
        return value if value.tzinfo is not None else value.replace(tzinfo=zone)
    if isinstance(value, date):
        return datetime.combine(value, time.min, tzinfo=zone)
    try:
        parsed = date_parser.isoparse(str(value).strip())
    except (ValueError, OverflowError):
        LOGGER.warning("Ignoring unparseable timestamp %r", value)
        return None
    return parsed if parsed.tzinfo is not None else parsed.replace(tzinfo=zone)


@dataclass(frozen=True)
class Window:
    """Inclusive time window; a ``None`` bound is unbounded."""

    start: Optional[datetime] = None
    end: Optional[datetime] = None

    @property
    def bounded(self) -> bool:
        return self.start is not None or self.end is not None

    def contains(self, moment: Optional[datetime]) -> bool:
        """Return whether ``moment`` falls inside the window. Missing dates never match."""

        if moment is None:
            return False
        if moment.tzinfo is None:
            moment = moment.replace(tzinfo=local_timezone())
        if self.start is not None and moment < self.start:
            return False
        if self.end is not None and moment > self.end:
            return False
        return True


@dataclass(frozen=True)
class DateRange:
    """Period selector chosen in the UI or on the command line."""

    kind: RangeKind = RangeKind.THIS_MONTH
    start: Optional[date] = None
    end: Optional[date] = None

    def __post_init__(self) -> None:
        if self.kind is RangeKind.CUSTOM:
            if self.start is None or self.end is None:
                raise ValueError("Custom date ranges require both a start and an end date.")
            if self.start > self.end:
                raise ValueError(f"Custom range start {self.start} is after its end {self.end}.")

    @classmethod
    def last_7_days(cls) -> "DateRange":
        return cls(RangeKind.LAST_7_DAYS)

    @classmethod
    def this_month(cls) -> "DateRange":
        return cls(RangeKind.THIS_MONTH)

    @classmethod
    def all_time(cls) -> "DateRange":
        return cls(RangeKind.ALL)

    @classmethod
    def custom(cls, start: date, end: date) -> "DateRange":
        return cls(RangeKind.CUSTOM, start=start, end=end)

    @classmethod
    def parse(cls, text: str) -> "DateRange":
        """Parse ``last7days``, ``thisMonth``, ``all`` or ``custom:YYYY-MM-DD..YYYY-MM-DD``."""

        value = (text or "").strip()
        kind = _ALIASES.get(value.lower())
        if kind is not None:
            return cls(kind)
        prefix, _, bounds = value.partition(":")
        if prefix.lower() != "custom" or ".." not in bounds:
            raise ValueError(
                f"Unknown date range '{text}'. Use last7days, thisMonth, all or custom:START..END"
            )
        start_text, _, end_text = bounds.partition("..")
        try:
            start = date.fromisoformat(start_text.strip())
            end = date.fromisoformat(end_text.strip())
        except ValueError as exc:
            raise ValueError(f"Invalid custom range '{text}': {exc}") from exc
        return cls.custom(start, end)

    def label(self) -> str:
        if self.kind is RangeKind.CUSTOM:
            return f"custom:{self.start.isoformat()}..{self.end.isoformat()}"  # type: ignore[union-attr]
        return self.kind.value

    def resolve(self, now: Optional[datetime] = None) -> Window:
        """Resolve the selector into a concrete window relative to ``now``."""

        now = _aware_now(now)
        if self.kind is RangeKind.ALL:
            return Window()
        if self.kind is RangeKind.LAST_7_DAYS:
            start = (now - timedelta(days=7)).replace(hour=0, minute=0, second=0, microsecond=0)
            return Window(start=start, end=now)
        if self.kind is RangeKind.THIS_MONTH:
            start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
            return Window(start=start, end=now)
        zone = now.tzinfo
        return Window(
            start=datetime.combine(self.start, time.min, tzinfo=zone),  # type: ignore[arg-type]
            end=datetime.combine(self.end, _END_OF_DAY, tzinfo=zone),  # type: ignore[arg-type]
        )


def _aware_now(now: Optional[datetime]) -> datetime:
    if now is None:
        return datetime.now(local_timezone())
    if now.tzinfo is None:
        return now.replace(tzinfo=local_timezone())
    return now


__all__ = ["DateRange", "RangeKind", "Window", "local_timezone", "parse_timestamp"]
