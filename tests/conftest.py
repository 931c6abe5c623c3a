from datetime import UTC, datetime, timedelta

import pytest

from calendar_digest.features.daily_summary.domain.models import OutboundMessage
from calendar_digest.features.daily_summary.services.config_loader import ConfigurationSheet
from calendar_digest.features.daily_summary.services.retry import RetryExecutor
from calendar_digest.features.daily_summary.services.tracker import ExecutionTracker
from calendar_digest.models.domain.calendar_domain import CalendarEvent
from calendar_digest.services.calendar.source import CalendarHandle
from calendar_digest.services.mail.channels import MailChannelError

# Wednesday
FIXED_NOW = datetime(2024, 1, 10, 8, 0, tzinfo=UTC)
FIXED_DAY = datetime(2024, 1, 10, tzinfo=UTC)

CONFIG_HEADERS = [
    "Recipient Email",
    "Calendar ID",
    "Timezone",
    "Time Format",
    "Date Range",
    "Frequency",
    "Status",
    "Filter Keywords",
]


def make_event(
    title: str,
    start_hour: float,
    end_hour: float,
    location: str = "",
    description: str = "",
    day: datetime = FIXED_DAY,
) -> CalendarEvent:
    start = day + timedelta(hours=start_hour)
    end = day + timedelta(hours=end_hour)
    return CalendarEvent(
        {
            "id": title.lower().replace(" ", "-"),
            "summary": title,
            "location": location,
            "description": description,
            "start": {"dateTime": start.isoformat()},
            "end": {"dateTime": end.isoformat()},
        }
    )


def sample_events() -> list[CalendarEvent]:
    return [
        make_event("Daily Standup", 9, 9.5, "Conference Room A", "Daily team standup meeting"),
        make_event(
            "Lunch with Client", 12, 13, "Downtown Restaurant", "Important client meeting over lunch"
        ),
        make_event("Project Review", 15, 16, "Meeting Room B", "Quarterly project review session"),
        make_event("Personal Appointment", 18, 19, "Medical Center", "Personal medical appointment"),
        make_event("Company Holiday", 0, 24, "", "Company-wide holiday"),
        make_event("Phone Interview", 14, 15, "", "Remote phone interview with candidate"),
        make_event("Quick Sync", 10, 10.5, "Office", ""),
        make_event(
            "Cancelled Meeting", 11, 12, "Cancelled Location", "This meeting has been cancelled"
        ),
        make_event(
            "Optional Team Building", 17, 18, "Break Room", "Optional team building activity"
        ),
    ]


class FakeCalendarSource:
    """
    In-memory calendar source.

    calendars maps calendar id -> (name, events), or -> an Exception instance to
    raise on lookup. Unknown ids resolve to None (not found).
    """

    def __init__(self, calendars: dict):
        self.calendars = calendars
        self.lookups: list[str] = []
        self.fetches: list[tuple[str, datetime, datetime]] = []

    async def get_calendar_by_external_id(self, calendar_id: str) -> CalendarHandle | None:
        self.lookups.append(calendar_id)
        entry = self.calendars.get(calendar_id)
        if entry is None:
            return None
        if isinstance(entry, Exception):
            raise entry

        name, events = entry

        async def _fetch(start: datetime, end: datetime) -> list[CalendarEvent]:
            self.fetches.append((calendar_id, start, end))
            return list(events)

        return CalendarHandle(calendar_id=calendar_id, name=name, _fetch=_fetch)


class RecordingChannel:
    """Mail channel that records deliveries and fails for chosen recipients."""

    def __init__(
        self,
        name: str = "recording",
        fail_for: set[str] | None = None,
        error_message: str = "service is currently unavailable",
    ):
        self.name = name
        self.fail_for = fail_for or set()
        self.error_message = error_message
        self.sent: list[OutboundMessage] = []
        self.attempts: list[str] = []

    async def send(self, message: OutboundMessage) -> None:
        self.attempts.append(message.to)
        if message.to in self.fail_for:
            raise MailChannelError(self.error_message, self.name)
        self.sent.append(message)


class StaticConfigSource:
    def __init__(self, headers: list, rows: list[list]):
        self.headers = headers
        self.rows = rows

    async def load(self) -> ConfigurationSheet:
        return ConfigurationSheet(headers=self.headers, rows=self.rows)


@pytest.fixture
def sleeps():
    return []


@pytest.fixture
def instant_sleep(sleeps):
    async def _sleep(delay: float) -> None:
        sleeps.append(delay)

    return _sleep


@pytest.fixture
def tracker():
    return ExecutionTracker()


@pytest.fixture
def retry(tracker, instant_sleep):
    return RetryExecutor(tracker, sleep=instant_sleep, jitter=lambda: 0.0)


@pytest.fixture
def events():
    return sample_events()


@pytest.fixture
def fixed_now():
    return FIXED_NOW


@pytest.fixture
def config_headers():
    return list(CONFIG_HEADERS)


@pytest.fixture
def event_factory():
    return make_event


@pytest.fixture
def calendar_source_factory():
    return FakeCalendarSource


@pytest.fixture
def channel_factory():
    return RecordingChannel


@pytest.fixture
def config_source_factory():
    return StaticConfigSource
