"""
Summary email rendering.

Pure functions of their inputs: the renderer never performs I/O. Output is a
plain-text body plus a minimal HTML body that also shows end times and
short descriptions.
"""

import html
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime, tzinfo
from typing import NamedTuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from calendar_digest.features.daily_summary.domain.models import (
    DateInterval,
    RecipientPreferences,
)
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.models.domain.calendar_domain import CalendarEvent

logger = get_logger(__name__)

NO_EVENTS_TEXT = "No events found for today."
SIGN_OFF = "Best regards,\nYour Google Calendar"
MAX_HTML_DESCRIPTION = 100  # characters


@dataclass(frozen=True, slots=True)
class RenderedSummary:
    text_body: str
    html_body: str


def _resolve_zone(timezone: str | None, default: tzinfo) -> tzinfo:
    if not timezone:
        return default
    try:
        return ZoneInfo(timezone)
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Invalid timezone, using default formatting", timezone=timezone)
        return default


def format_event_time(
    start_time: datetime,
    timezone: str | None = None,
    use_24_hour: bool = False,
    default_tz: tzinfo = UTC,
) -> str:
    """
    Format an event start as '03:30 PM' or '15:30'.

    The time is shown in the recipient's timezone when given, otherwise in
    default_tz. Naive datetimes are taken to already be in the display zone.
    """
    zone = _resolve_zone(timezone, default_tz)
    local = start_time.astimezone(zone) if start_time.tzinfo else start_time
    return local.strftime("%H:%M" if use_24_hour else "%I:%M %p")


class EventLine(NamedTuple):
    start: str
    end: str
    title: str
    location: str
    description: str


class SummaryRenderer:
    """Builds the text and HTML bodies of a recipient's summary."""

    def __init__(self, default_tz: tzinfo = UTC):
        self.default_tz = default_tz

    def render(
        self,
        recipient_email: str,
        calendar_name: str,
        events: Sequence[CalendarEvent],
        preferences: RecipientPreferences | None = None,
        interval: DateInterval | None = None,
    ) -> RenderedSummary:
        preferences = preferences or RecipientPreferences()
        recipient_name = recipient_email.split("@")[0]
        date_text = f"for {interval.description}" if interval else "for today"

        lines = [self._event_line(event, preferences) for event in events]

        return RenderedSummary(
            text_body=self._text_body(recipient_name, calendar_name, date_text, lines, preferences),
            html_body=self._html_body(recipient_name, calendar_name, date_text, lines, preferences),
        )

    def _format(self, moment: datetime | None, preferences: RecipientPreferences) -> str:
        if not moment:
            return ""
        return format_event_time(
            moment, preferences.timezone, bool(preferences.use_24_hour), self.default_tz
        )

    def _event_line(self, event: CalendarEvent, preferences: RecipientPreferences) -> EventLine:
        return EventLine(
            start=self._format(event.start_time, preferences),
            end=self._format(event.end_time, preferences),
            title=event.title,
            location=event.location,
            description=event.description,
        )

    @staticmethod
    def _text_body(
        recipient_name: str,
        calendar_name: str,
        date_text: str,
        lines: list[EventLine],
        preferences: RecipientPreferences,
    ) -> str:
        body = f'Hello {recipient_name},\n\nHere are your events {date_text} from "{calendar_name}":\n\n'

        if not lines:
            body += NO_EVENTS_TEXT
        for line in lines:
            body += f"• {line.start} - {line.title}"
            if line.location:
                body += f" ({line.location})"
            body += "\n"

        if preferences.timezone:
            body += f"\n(Times shown in {preferences.timezone} timezone)\n"

        return body + "\n\n" + SIGN_OFF

    @staticmethod
    def _html_body(
        recipient_name: str,
        calendar_name: str,
        date_text: str,
        lines: list[EventLine],
        preferences: RecipientPreferences,
    ) -> str:
        parts = [
            f"<p>Hello {html.escape(recipient_name)},</p>",
            f"<p>Here are your events {html.escape(date_text)} "
            f"from &quot;{html.escape(calendar_name)}&quot;:</p>",
        ]

        if lines:
            parts.append("<ul>")
            for line in lines:
                span = f"{line.start} - {line.end}" if line.end else line.start
                item = f"<strong>{html.escape(span)}</strong> - {html.escape(line.title)}"
                if line.location:
                    item += f" ({html.escape(line.location)})"
                # Long descriptions are left out of the HTML list
                if line.description and len(line.description) < MAX_HTML_DESCRIPTION:
                    item += f"<br><em>{html.escape(line.description)}</em>"
                parts.append(f"<li>{item}</li>")
            parts.append("</ul>")
        else:
            parts.append(f"<p>{NO_EVENTS_TEXT}</p>")

        if preferences.timezone:
            parts.append(f"<p>Times shown in {html.escape(preferences.timezone)} timezone</p>")

        parts.append("<p>Best regards,<br>Your Google Calendar</p>")
        return "\n".join(parts)
