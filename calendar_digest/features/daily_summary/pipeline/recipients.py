"""
Recipient expansion.

Turns raw configuration rows into RecipientRecords: one record per
(recipient email, calendar id) pair, with opted-out and malformed rows dropped
and preferences parsed permissively.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

from calendar_digest.features.daily_summary.domain.errors import ConfigurationError
from calendar_digest.features.daily_summary.domain.models import (
    RecipientPreferences,
    RecipientRecord,
)
from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

COLUMN_EMAIL = "Recipient Email"
COLUMN_CALENDAR_ID = "Calendar ID"
COLUMN_TIMEZONE = "Timezone"
COLUMN_TIME_FORMAT = "Time Format"
COLUMN_DATE_RANGE = "Date Range"
COLUMN_FREQUENCY = "Frequency"
COLUMN_STATUS = "Status"
COLUMN_FILTER_KEYWORDS = "Filter Keywords"

REQUIRED_COLUMNS = (COLUMN_EMAIL, COLUMN_CALENDAR_ID)
OPTIONAL_COLUMNS = (
    COLUMN_TIMEZONE,
    COLUMN_TIME_FORMAT,
    COLUMN_DATE_RANGE,
    COLUMN_FREQUENCY,
    COLUMN_STATUS,
    COLUMN_FILTER_KEYWORDS,
)

# Alphanumeric at both ends of the local part and domain, single dots only,
# final label of two or more letters.
ADDRESS_PATTERN = re.compile(
    r"^[a-zA-Z0-9]([a-zA-Z0-9._+-]*[a-zA-Z0-9])?"
    r"@[a-zA-Z0-9]([a-zA-Z0-9.-]*[a-zA-Z0-9])?\.[a-zA-Z]{2,}$"
)


@dataclass(slots=True)
class ValidationResult:
    is_valid: bool
    errors: list[str] = field(default_factory=list)


def is_valid_address(value: Any) -> bool:
    """True if value is an address-shaped string (emails and calendar ids alike)."""
    if not value or not isinstance(value, str):
        return False
    return bool(ADDRESS_PATTERN.match(value)) and ".." not in value


def validate_recipient_data(email: Any, calendar_id: Any) -> ValidationResult:
    """Validate a recipient email and a single calendar id."""
    errors = []
    if not is_valid_address(email):
        errors.append(f'Invalid email format: "{email}"')
    if not is_valid_address(calendar_id):
        errors.append(f'Invalid calendar ID format: "{calendar_id}"')
    return ValidationResult(is_valid=not errors, errors=errors)


def build_column_index(headers: Sequence[Any]) -> dict[str, int]:
    """
    Map recognized column names to their positions in the header row.

    Raises:
        ConfigurationError: If a required column is missing
    """
    names = [str(h).strip() if h is not None else "" for h in headers]
    index = {name: names.index(name) for name in REQUIRED_COLUMNS + OPTIONAL_COLUMNS if name in names}

    missing = [name for name in REQUIRED_COLUMNS if name not in index]
    if missing:
        raise ConfigurationError(
            f"Configuration sheet is missing required columns: {', '.join(missing)}. "
            f"Please ensure '{COLUMN_EMAIL}' and '{COLUMN_CALENDAR_ID}' columns exist.",
            operation="build_column_index",
        )

    return index


def _cell(row: Sequence[Any], column_index: dict[str, int], column: str) -> str | None:
    """Trimmed cell text, or None when the column is absent or the cell is empty."""
    position = column_index.get(column)
    if position is None or position >= len(row):
        return None
    value = row[position]
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_keywords(value: str | None) -> tuple[str, ...] | None:
    """Split a comma-separated keyword cell into trimmed, lower-cased tokens."""
    if not value:
        return None
    keywords = tuple(k.strip().lower() for k in value.split(",") if k.strip())
    return keywords or None


def parse_preferences(row: Sequence[Any], column_index: dict[str, int]) -> RecipientPreferences:
    """Read optional preference columns; anything absent stays None."""
    timezone = _cell(row, column_index, COLUMN_TIMEZONE)
    time_format = _cell(row, column_index, COLUMN_TIME_FORMAT)
    date_range = _cell(row, column_index, COLUMN_DATE_RANGE)
    frequency = _cell(row, column_index, COLUMN_FREQUENCY)
    keywords = _cell(row, column_index, COLUMN_FILTER_KEYWORDS)

    return RecipientPreferences(
        timezone=timezone,
        use_24_hour=True if time_format and time_format.lower() == "24h" else None,
        date_range=date_range.lower() if date_range else None,
        frequency=frequency.lower() if frequency else None,
        filter_keywords=parse_keywords(keywords),
    )


def expand_recipients(
    rows: Sequence[Sequence[Any]], column_index: dict[str, int]
) -> list[RecipientRecord]:
    """
    Expand data rows (header row excluded) into RecipientRecords.

    Output keeps row order, then calendar order within a row.
    """
    recipients: list[RecipientRecord] = []

    for row_number, row in enumerate(rows, start=2):
        email = _cell(row, column_index, COLUMN_EMAIL)
        calendar_cell = _cell(row, column_index, COLUMN_CALENDAR_ID)

        if not email or not calendar_cell:
            logger.info("Skipping row with missing email or calendar id", row=row_number)
            continue

        if not is_valid_address(email):
            logger.warning("Skipping row with invalid email", row=row_number, email=email)
            continue

        status = _cell(row, column_index, COLUMN_STATUS)
        if status and status.lower() == "disabled":
            logger.info("Skipping opted-out recipient", row=row_number, email=email)
            continue

        preferences = parse_preferences(row, column_index)

        pieces = [c.strip() for c in calendar_cell.split(",") if c.strip()]
        # Repeated ids in one cell are listed once, first occurrence wins
        calendar_ids = list(dict.fromkeys(pieces))
        if len(calendar_ids) < len(pieces):
            logger.info("Ignoring repeated calendar ids", row=row_number, email=email)
        total = len(calendar_ids)
        added = 0

        for position, calendar_id in enumerate(calendar_ids):
            validation = validate_recipient_data(email, calendar_id)
            if not validation.is_valid:
                logger.warning(
                    "Skipping calendar id",
                    row=row_number,
                    email=email,
                    calendar_id=calendar_id,
                    errors=validation.errors,
                )
                continue

            recipients.append(
                RecipientRecord(
                    email=email,
                    calendar_id=calendar_id,
                    preferences=preferences,
                    is_multi_calendar=total > 1,
                    calendar_index=position,
                    total_calendars=total,
                )
            )
            added += 1

        if not added:
            logger.warning("Skipping row with no valid calendar ids", row=row_number, email=email)

    logger.info("Recipients expanded", row_count=len(rows), recipient_count=len(recipients))
    return recipients
