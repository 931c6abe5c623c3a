"""
Calendar batching.

Recipients that share a calendar id and a resolved date window form one
CalendarGroup, and each group is read from the calendar source exactly once.
A failed read marks the whole group failed; its recipients are not retried
individually.
"""

from collections.abc import Callable, Iterable
from datetime import datetime, tzinfo

from calendar_digest.features.daily_summary.domain.models import (
    CalendarGroup,
    GroupKey,
    GroupResult,
    RecipientRecord,
    group_key,
)
from calendar_digest.features.daily_summary.pipeline.schedule import (
    DEFAULT_DATE_RANGE,
    calculate_date_range,
)
from calendar_digest.features.daily_summary.services.retry import RetryExecutor
from calendar_digest.features.daily_summary.services.tracker import ExecutionTracker
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.services.calendar.source import CalendarNotFoundError, CalendarSource

logger = get_logger(__name__)


def group_recipients(
    recipients: Iterable[RecipientRecord], now: datetime, tz: tzinfo
) -> dict[GroupKey, CalendarGroup]:
    """Group recipients by (calendar id, window start, window end), first-seen order."""
    groups: dict[GroupKey, CalendarGroup] = {}
    for recipient in recipients:
        interval = calculate_date_range(
            recipient.preferences.date_range or DEFAULT_DATE_RANGE, now=now, tz=tz
        )
        key = group_key(recipient.calendar_id, interval)
        if key not in groups:
            groups[key] = CalendarGroup(calendar_id=recipient.calendar_id, interval=interval)
        groups[key].recipients.append(recipient)
    return groups


class CalendarBatcher:
    """Fetches each distinct calendar group once and records the outcome."""

    def __init__(
        self,
        source: CalendarSource,
        retry: RetryExecutor,
        tracker: ExecutionTracker,
        now: Callable[[], datetime],
        tz: tzinfo,
    ):
        self._source = source
        self._retry = retry
        self._tracker = tracker
        self._now = now
        self._tz = tz

    async def fetch_all(self, recipients: Iterable[RecipientRecord]) -> dict[GroupKey, GroupResult]:
        groups = group_recipients(recipients, self._now(), self._tz)

        logger.info("Calendar groups built", group_count=len(groups))

        results: dict[GroupKey, GroupResult] = {}
        for key, group in groups.items():
            results[key] = await self._fetch_group(group)
        return results

    async def _fetch_group(self, group: CalendarGroup) -> GroupResult:
        calendar_id = group.calendar_id
        interval = group.interval

        async def load_calendar():
            calendar = await self._source.get_calendar_by_external_id(calendar_id)
            if calendar is None:
                raise CalendarNotFoundError(calendar_id)
            return calendar

        try:
            calendar = await self._retry.execute(load_calendar, f"get calendar {calendar_id}")
            events = await self._retry.execute(
                lambda: calendar.fetch_events(interval.start, interval.end),
                f"list events {calendar_id}",
            )
        except Exception as e:
            self._tracker.add_error(e, f"Accessing calendar {calendar_id}")
            logger.error(
                "Could not access calendar",
                calendar_id=calendar_id,
                recipients=len(group.recipients),
                error=str(e),
            )
            return GroupResult(
                calendar_id=calendar_id,
                calendar_name="",
                events=(),
                recipients=tuple(group.recipients),
                interval=interval,
                success=False,
                error_message=str(e),
            )

        self._tracker.increment_calendars()
        self._tracker.add_events(len(events))
        logger.info(
            "Calendar group fetched",
            calendar_id=calendar_id,
            range=interval.description,
            event_count=len(events),
            recipients=len(group.recipients),
        )

        return GroupResult(
            calendar_id=calendar_id,
            calendar_name=calendar.name,
            events=tuple(events),
            recipients=tuple(group.recipients),
            interval=interval,
            success=True,
        )
