"""Keyword filtering of a recipient's merged events."""

from collections.abc import Sequence

from calendar_digest.models.domain.calendar_domain import CalendarEvent


def split_keywords(keywords: Sequence[str]) -> tuple[list[str], list[str]]:
    """Partition tokens into (include, exclude); exclude tokens lose their leading '-'."""
    include = [k.lower() for k in keywords if not k.startswith("-")]
    exclude = [k[1:].lower() for k in keywords if k.startswith("-")]
    return include, exclude


def filter_events_by_keywords(
    events: Sequence[CalendarEvent], keywords: Sequence[str] | None = None
) -> list[CalendarEvent]:
    """
    Keep events whose text contains every include token and no exclude token.

    Include tokens are conjunctive: ["standup", "review"] keeps only events
    mentioning both. Text searched is title, description and location.
    """
    if not keywords:
        return list(events)

    include, exclude = split_keywords(keywords)

    def matches(event: CalendarEvent) -> bool:
        text = event.searchable_text()
        return all(k in text for k in include) and not any(k in text for k in exclude)

    return [event for event in events if matches(event)]
