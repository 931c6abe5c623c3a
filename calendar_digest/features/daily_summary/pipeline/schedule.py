"""
Frequency gating and date-range resolution.

Both preference columns are free text in the sheet. They are parsed into a
closed set of variants; anything unrecognized falls back to "daily" and
"today" respectively.
"""

from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta, tzinfo
from enum import Enum
from zoneinfo import ZoneInfo

from calendar_digest.features.daily_summary.domain.models import DateInterval, RecipientRecord
from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_FREQUENCY = "daily"
DEFAULT_DATE_RANGE = "today"


def day_of_week(moment: datetime | date) -> int:
    """0 = Sunday ... 6 = Saturday."""
    return moment.isoweekday() % 7


# =================================================================
# FREQUENCY
# =================================================================


class Frequency(Enum):
    DAILY = frozenset(range(7))
    WEEKDAYS = frozenset({1, 2, 3, 4, 5})
    MONDAY = frozenset({1})
    WEDNESDAY = frozenset({3})
    FRIDAY = frozenset({5})
    WEEKENDS = frozenset({0, 6})
    NEVER = frozenset()

    def allows(self, day: int) -> bool:
        return day in self.value


FREQUENCY_ALIASES = {
    "daily": Frequency.DAILY,
    "weekdays": Frequency.WEEKDAYS,
    "weekdays only": Frequency.WEEKDAYS,
    "monday": Frequency.MONDAY,
    "mondays only": Frequency.MONDAY,
    "wednesday": Frequency.WEDNESDAY,
    "wednesdays only": Frequency.WEDNESDAY,
    "friday": Frequency.FRIDAY,
    "fridays only": Frequency.FRIDAY,
    "weekends": Frequency.WEEKENDS,
    "weekends only": Frequency.WEEKENDS,
    "never": Frequency.NEVER,
    "disabled": Frequency.NEVER,
}


def parse_frequency(value: str | None) -> Frequency:
    key = (value or DEFAULT_FREQUENCY).strip().lower()
    frequency = FREQUENCY_ALIASES.get(key)
    if frequency is None:
        logger.info("Unrecognized frequency, treating as daily", frequency=value)
        return Frequency.DAILY
    return frequency


def should_send(frequency: str | None = DEFAULT_FREQUENCY, today: datetime | None = None) -> bool:
    """Whether a recipient with this frequency preference gets mail on `today`."""
    today = today or datetime.now()
    return parse_frequency(frequency).allows(day_of_week(today))


def filter_by_frequency(
    recipients: Iterable[RecipientRecord], today: datetime
) -> list[RecipientRecord]:
    """Keep recipients whose frequency allows sending today, in input order."""
    recipients = list(recipients)
    active = []
    for recipient in recipients:
        frequency = recipient.preferences.frequency or DEFAULT_FREQUENCY
        if should_send(frequency, today):
            active.append(recipient)
        else:
            logger.info(
                "Skipping recipient for frequency",
                email=recipient.email,
                calendar_id=recipient.calendar_id,
                frequency=frequency,
            )

    logger.info(
        "Frequency filtering complete",
        active=len(active),
        skipped=len(recipients) - len(active),
    )
    return active


# =================================================================
# DATE RANGE
# =================================================================


def _at_midnight(day: date, tz: tzinfo) -> datetime:
    return datetime.combine(day, time.min, tzinfo=tz)


def _span(day: date, tz: tzinfo, offset: int, length: int, description: str) -> DateInterval:
    start_day = day + timedelta(days=offset)
    return DateInterval(
        start=_at_midnight(start_day, tz),
        end=_at_midnight(start_day + timedelta(days=length), tz),
        description=description,
    )


def _resolve_today(day: date, tz: tzinfo) -> DateInterval:
    return _span(day, tz, 0, 1, "today")


def _resolve_tomorrow(day: date, tz: tzinfo) -> DateInterval:
    return _span(day, tz, 1, 1, "tomorrow")


def _resolve_next_3_days(day: date, tz: tzinfo) -> DateInterval:
    return _span(day, tz, 0, 3, "the next 3 days")


def _resolve_this_week(day: date, tz: tzinfo) -> DateInterval:
    return _span(day, tz, -day_of_week(day), 7, "this week")


def _resolve_next_week(day: date, tz: tzinfo) -> DateInterval:
    return _span(day, tz, 7 - day_of_week(day), 7, "next week")


def _resolve_weekdays(day: date, tz: tzinfo) -> DateInterval:
    # Same window as today; the weekday restriction is the frequency gate's job
    return _span(day, tz, 0, 1, "today (weekdays only)")


class DateRange(Enum):
    TODAY = (_resolve_today,)
    TOMORROW = (_resolve_tomorrow,)
    NEXT_3_DAYS = (_resolve_next_3_days,)
    THIS_WEEK = (_resolve_this_week,)
    NEXT_WEEK = (_resolve_next_week,)
    WEEKDAYS = (_resolve_weekdays,)

    def __init__(self, resolver: Callable[[date, tzinfo], DateInterval]):
        self.resolver = resolver

    def resolve(self, day: date, tz: tzinfo) -> DateInterval:
        return self.resolver(day, tz)


DATE_RANGE_ALIASES = {
    "today": DateRange.TODAY,
    "tomorrow": DateRange.TOMORROW,
    "next 3 days": DateRange.NEXT_3_DAYS,
    "next3days": DateRange.NEXT_3_DAYS,
    "this week": DateRange.THIS_WEEK,
    "thisweek": DateRange.THIS_WEEK,
    "next week": DateRange.NEXT_WEEK,
    "nextweek": DateRange.NEXT_WEEK,
    "weekdays": DateRange.WEEKDAYS,
    "weekdays only": DateRange.WEEKDAYS,
}


def parse_date_range(value: str | None) -> DateRange:
    key = (value or DEFAULT_DATE_RANGE).strip().lower()
    return DATE_RANGE_ALIASES.get(key, DateRange.TODAY)


def calculate_date_range(
    preference: str | None = DEFAULT_DATE_RANGE,
    now: datetime | None = None,
    tz: tzinfo | None = None,
) -> DateInterval:
    """
    Resolve a date-range preference to a half-open interval.

    The interval is anchored at midnight of `now`'s calendar day in `tz`
    (defaults: the current time, UTC). Unrecognized preferences resolve
    exactly like "today".
    """
    tz = tz or (now.tzinfo if now and now.tzinfo else ZoneInfo("UTC"))
    now = now or datetime.now(tz)
    local_day = now.astimezone(tz).date() if now.tzinfo else now.date()
    return parse_date_range(preference).resolve(local_day, tz)
