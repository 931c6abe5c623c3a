"""
Domain models for the daily summary pipeline.

Records flow left to right through the pipeline: RecipientRecord ->
CalendarGroup -> GroupResult -> RecipientDelivery -> OutboundMessage. All of
them are created once per run and are not persisted.
"""

from dataclasses import dataclass, field
from datetime import datetime

from calendar_digest.models.domain.calendar_domain import CalendarEvent

# (calendar_id, start epoch ms, end epoch ms)
GroupKey = tuple[str, int, int]


@dataclass(frozen=True, slots=True)
class RecipientPreferences:
    """Per-row preferences. None means the column was absent or empty."""

    timezone: str | None = None
    use_24_hour: bool | None = None
    date_range: str | None = None
    frequency: str | None = None
    filter_keywords: tuple[str, ...] | None = None


@dataclass(frozen=True, slots=True)
class RecipientRecord:
    """One (recipient email, single calendar id) pair from a configuration row."""

    email: str
    calendar_id: str
    preferences: RecipientPreferences = field(default_factory=RecipientPreferences)
    is_multi_calendar: bool = False
    calendar_index: int = 0
    total_calendars: int = 1

    @property
    def display_name(self) -> str:
        return self.email.split("@")[0]


@dataclass(frozen=True, slots=True)
class DateInterval:
    """Half-open window [start, end) with a human description."""

    start: datetime
    end: datetime
    description: str

    @property
    def start_epoch_ms(self) -> int:
        return int(self.start.timestamp() * 1000)

    @property
    def end_epoch_ms(self) -> int:
        return int(self.end.timestamp() * 1000)


@dataclass(slots=True)
class CalendarGroup:
    """All recipients sharing one calendar id and one resolved interval."""

    calendar_id: str
    interval: DateInterval
    recipients: list[RecipientRecord] = field(default_factory=list)


def group_key(calendar_id: str, interval: DateInterval) -> GroupKey:
    return (calendar_id, interval.start_epoch_ms, interval.end_epoch_ms)


@dataclass(frozen=True, slots=True)
class GroupResult:
    """Outcome of fetching one CalendarGroup."""

    calendar_id: str
    calendar_name: str
    events: tuple[CalendarEvent, ...]
    recipients: tuple[RecipientRecord, ...]
    interval: DateInterval
    success: bool
    error_message: str | None = None


@dataclass(frozen=True, slots=True)
class CalendarSourceEntry:
    calendar_name: str
    events: tuple[CalendarEvent, ...]
    succeeded: bool = True


@dataclass(frozen=True, slots=True)
class CalendarFailure:
    calendar_id: str
    message: str


@dataclass(slots=True)
class RecipientDelivery:
    """Everything gathered for one recipient email across its calendars."""

    recipient: RecipientRecord
    interval: DateInterval
    calendar_sources: list[CalendarSourceEntry] = field(default_factory=list)
    errors: list[CalendarFailure] = field(default_factory=list)

    @property
    def email(self) -> str:
        return self.recipient.email

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def all_failed(self) -> bool:
        return self.has_errors and not self.calendar_sources


@dataclass(frozen=True, slots=True)
class OutboundMessage:
    to: str
    subject: str
    body: str
    html_body: str | None = None
    is_error_notice: bool = False
