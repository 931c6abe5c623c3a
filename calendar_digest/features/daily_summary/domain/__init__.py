"""Domain models and errors for the daily summary feature."""

from .errors import ConfigurationError, DailySummaryJobError  # noqa: F401
from .models import (  # noqa: F401
    CalendarFailure,
    CalendarGroup,
    CalendarSourceEntry,
    DateInterval,
    GroupResult,
    OutboundMessage,
    RecipientDelivery,
    RecipientPreferences,
    RecipientRecord,
)
