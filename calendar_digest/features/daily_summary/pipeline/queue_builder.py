"""
Delivery queue construction.

Turns reconciled recipient deliveries into OutboundMessages. Recipients with
at least one working calendar get a summary; recipients whose calendars all
failed get a single error notice instead.
"""

from collections.abc import Iterable

from calendar_digest.features.daily_summary.domain.models import (
    OutboundMessage,
    RecipientDelivery,
)
from calendar_digest.features.daily_summary.pipeline.filtering import filter_events_by_keywords
from calendar_digest.features.daily_summary.pipeline.templates import SummaryRenderer
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.models.domain.calendar_domain import CalendarEvent

logger = get_logger(__name__)

DEFAULT_SUBJECT = "Your Events for the Day"
ERROR_SUBJECT = "Calendar Summary Error: Calendars Not Found"


def summary_subject(description: str | None) -> str:
    """'today' or no description keeps the default subject."""
    if not description or description == "today":
        return DEFAULT_SUBJECT
    return f"Your Events {description[0].upper()}{description[1:]}"


def calendar_display_name(calendar_names: list[str]) -> str:
    if len(calendar_names) == 1:
        return calendar_names[0]
    return f"{len(calendar_names)} calendars"


def _start_sort_key(event: CalendarEvent) -> float:
    # Events without a start sort last
    return event.start_time.timestamp() if event.start_time else float("inf")


def build_error_notice(delivery: RecipientDelivery) -> OutboundMessage:
    reasons = ", ".join(error.message for error in delivery.errors)
    body = (
        f"Hello {delivery.recipient.display_name},\n\n"
        "Your daily calendar summary could not be generated because calendars were "
        "not found or accessible. Please check the Calendar IDs in the configuration sheet.\n\n"
        f"Errors: {reasons}"
    )
    return OutboundMessage(to=delivery.email, subject=ERROR_SUBJECT, body=body, is_error_notice=True)


class DeliveryQueueBuilder:
    """Builds the ordered outbound queue from reconciled deliveries."""

    def __init__(self, renderer: SummaryRenderer | None = None):
        self.renderer = renderer or SummaryRenderer()

    def build(self, deliveries: Iterable[RecipientDelivery]) -> list[OutboundMessage]:
        queue: list[OutboundMessage] = []

        for delivery in deliveries:
            if delivery.all_failed:
                logger.warning(
                    "All calendars failed for recipient, queueing error notice",
                    email=delivery.email,
                    errors=[e.message for e in delivery.errors],
                )
                queue.append(build_error_notice(delivery))
                continue

            if delivery.has_errors:
                logger.warning(
                    "Some calendars failed for recipient",
                    email=delivery.email,
                    failed_calendars=[e.calendar_id for e in delivery.errors],
                    working_calendars=len(delivery.calendar_sources),
                )

            queue.append(self.build_summary(delivery))

        logger.info("Delivery queue built", message_count=len(queue))
        return queue

    def build_summary(self, delivery: RecipientDelivery) -> OutboundMessage:
        preferences = delivery.recipient.preferences

        merged: list[CalendarEvent] = []
        for source in delivery.calendar_sources:
            merged.extend(source.events)

        if preferences.filter_keywords:
            before = len(merged)
            merged = filter_events_by_keywords(merged, preferences.filter_keywords)
            logger.debug(
                "Keyword filter applied",
                email=delivery.email,
                kept=len(merged),
                dropped=before - len(merged),
            )

        merged.sort(key=_start_sort_key)

        display_name = calendar_display_name([s.calendar_name for s in delivery.calendar_sources])
        rendered = self.renderer.render(
            delivery.email, display_name, merged, preferences, delivery.interval
        )

        return OutboundMessage(
            to=delivery.email,
            subject=summary_subject(delivery.interval.description),
            body=rendered.text_body,
            html_body=rendered.html_body,
        )
