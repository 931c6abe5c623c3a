"""
Loads the recipient configuration table from Google Sheets.

Any problem here is a configuration error: the run stops before recipients are
expanded and the admin report carries the reason.
"""

from dataclasses import dataclass, field
from typing import Any

from calendar_digest.features.daily_summary.domain.errors import ConfigurationError
from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.services.sheets.google_client import (
    GoogleSheetsError,
    GoogleSheetsService,
    google_sheets_service,
)

logger = get_logger(__name__)


@dataclass(slots=True)
class ConfigurationSheet:
    headers: list[Any]
    rows: list[list[Any]] = field(default_factory=list)


class SheetConfigurationSource:
    def __init__(
        self,
        spreadsheet_id: str | None,
        sheet_name: str,
        access_token: str | None,
        service: GoogleSheetsService | None = None,
    ):
        self.spreadsheet_id = spreadsheet_id
        self.sheet_name = sheet_name
        self._access_token = access_token
        self._service = service or google_sheets_service

    async def load(self) -> ConfigurationSheet:
        if not self.spreadsheet_id:
            raise ConfigurationError(
                "SPREADSHEET_ID is not configured. Set it in the environment "
                "to the id of the configuration spreadsheet.",
                operation="load_configuration",
            )
        if not self._access_token:
            raise ConfigurationError(
                "GOOGLE_ACCESS_TOKEN is not configured; the configuration sheet cannot be read.",
                operation="load_configuration",
            )

        try:
            values = await self._service.get_values(
                self._access_token, self.spreadsheet_id, self.sheet_name
            )
        except GoogleSheetsError as e:
            logger.error(
                "Could not access configuration sheet",
                sheet_name=self.sheet_name,
                error=str(e),
            )
            raise ConfigurationError(
                f'Configuration sheet named "{self.sheet_name}" could not be read from '
                f'spreadsheet ID "{self.spreadsheet_id}": {e}',
                operation="load_configuration",
            ) from e

        if len(values) < 2:
            raise ConfigurationError(
                "No recipient configurations found in the sheet. "
                "Please add recipient emails and calendar IDs.",
                operation="load_configuration",
            )

        logger.info("Configuration sheet loaded", data_rows=len(values) - 1)
        return ConfigurationSheet(headers=list(values[0]), rows=[list(r) for r in values[1:]])
