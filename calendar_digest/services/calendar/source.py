"""
Calendar access collaborator used by the digest pipeline.

The pipeline only needs two things from a calendar: its display name and the
events inside a window. CalendarSource describes that seam; GoogleCalendarSource
implements it on top of GoogleCalendarService.
"""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.models.domain.calendar_domain import CalendarEvent
from calendar_digest.services.calendar.google_client import (
    GoogleCalendarError,
    GoogleCalendarService,
    google_calendar_service,
)

logger = get_logger(__name__)

EventFetcher = Callable[[datetime, datetime], Awaitable[list[CalendarEvent]]]


class CalendarNotFoundError(Exception):
    """Raised when a calendar id does not resolve to an accessible calendar."""

    def __init__(self, calendar_id: str):
        super().__init__(f'Calendar with ID "{calendar_id}" not found.')
        self.calendar_id = calendar_id


@dataclass(frozen=True)
class CalendarHandle:
    """A resolved calendar: display name plus a bound event fetcher."""

    calendar_id: str
    name: str
    _fetch: EventFetcher

    async def fetch_events(self, start: datetime, end: datetime) -> list[CalendarEvent]:
        return await self._fetch(start, end)


class CalendarSource(Protocol):
    async def get_calendar_by_external_id(self, calendar_id: str) -> CalendarHandle | None: ...


class GoogleCalendarSource:
    """CalendarSource backed by the Google Calendar API."""

    def __init__(self, access_token: str, service: GoogleCalendarService | None = None):
        self._access_token = access_token
        self._service = service or google_calendar_service

    async def get_calendar_by_external_id(self, calendar_id: str) -> CalendarHandle | None:
        try:
            info = await self._service.get_calendar(self._access_token, calendar_id)
        except GoogleCalendarError as e:
            if e.status_code == 404:
                logger.warning("Calendar not found", calendar_id=calendar_id)
                return None
            raise

        async def _fetch(start: datetime, end: datetime) -> list[CalendarEvent]:
            return await self._service.list_events(self._access_token, calendar_id, start, end)

        return CalendarHandle(calendar_id=calendar_id, name=info.name, _fetch=_fetch)
