"""
Daily summary feature package.

Everything for the calendar digest lives here: domain records, the
recipient-to-calendar pipeline stages, the run services (retry, tracking,
delivery) and the operator API router.
"""

from .domain.errors import ConfigurationError, DailySummaryJobError  # noqa: F401
from .domain.models import OutboundMessage, RecipientDelivery, RecipientRecord  # noqa: F401
