"""
Result reconciliation.

Regroups per-calendar fetch results by recipient email so a recipient with
several calendars gets one delivery built from every calendar that worked.
"""

from collections.abc import Mapping

from calendar_digest.features.daily_summary.domain.models import (
    CalendarFailure,
    CalendarSourceEntry,
    GroupKey,
    GroupResult,
    RecipientDelivery,
)


def reconcile_results(results: Mapping[GroupKey, GroupResult]) -> list[RecipientDelivery]:
    """
    Build one RecipientDelivery per distinct email, in first-seen order.

    The first record seen for an email is kept as its representative, and its
    group's interval is the one used for the summary.
    """
    deliveries: dict[str, RecipientDelivery] = {}

    for result in results.values():
        for recipient in result.recipients:
            delivery = deliveries.get(recipient.email)
            if delivery is None:
                delivery = RecipientDelivery(recipient=recipient, interval=result.interval)
                deliveries[recipient.email] = delivery

            if result.success:
                delivery.calendar_sources.append(
                    CalendarSourceEntry(
                        calendar_name=result.calendar_name, events=result.events, succeeded=True
                    )
                )
            else:
                delivery.errors.append(
                    CalendarFailure(
                        calendar_id=result.calendar_id,
                        message=result.error_message or "Unknown error",
                    )
                )

    return list(deliveries.values())
