# calendar_digest/models/domain/calendar_domain.py
"""
Calendar Domain Models
Domain models for calendar data read from the Google Calendar API.
Events are read-only here: the digest only lists and formats them.
"""

from datetime import UTC, datetime


class CalendarEvent:
    """Domain model for a calendar event as used in summaries."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.title = data.get("summary") or ""
        self.description = data.get("description") or ""
        self.location = data.get("location") or ""
        self.start_time = self._parse_datetime(data.get("start", {}))
        self.end_time = self._parse_datetime(data.get("end", {}))

    def _parse_datetime(self, dt_data: dict) -> datetime | None:
        """Parse datetime from Google Calendar format."""
        if not dt_data:
            return None

        # Handle all-day events (date only)
        if "date" in dt_data:
            date_str = dt_data["date"]
            return datetime.strptime(date_str, "%Y-%m-%d").replace(tzinfo=UTC)

        # Handle timed events (dateTime)
        if "dateTime" in dt_data:
            dt_str = dt_data["dateTime"]
            try:
                parsed = datetime.fromisoformat(dt_str.replace("Z", "+00:00"))
            except ValueError:
                return None
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=UTC)
            return parsed

        return None

    def searchable_text(self) -> str:
        """Lower-cased title, description and location joined by spaces."""
        return f"{self.title} {self.description} {self.location}".lower()

    def __repr__(self) -> str:
        return f"CalendarEvent(title={self.title!r}, start_time={self.start_time!r})"


class CalendarInfo:
    """Domain model for calendar metadata."""

    def __init__(self, data: dict):
        self.id = data.get("id")
        self.name = data.get("summaryOverride") or data.get("summary") or self.id or ""
