"""
Google Sheets API client for reading the recipient configuration table.
Low-level Sheets API client: returns the raw cell matrix of one tab.
"""

from typing import Any
from urllib.parse import quote

import httpx

from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

SHEETS_API_BASE_URL = "https://sheets.googleapis.com/v4/spreadsheets"
REQUEST_TIMEOUT = 30  # seconds


class GoogleSheetsError(Exception):
    """Custom exception for Google Sheets API errors."""

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GoogleSheetsService:
    """Service for reading spreadsheet values."""

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or httpx.AsyncClient(timeout=httpx.Timeout(REQUEST_TIMEOUT))

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _map_sheets_error(self, status_code: int, error_message: str) -> str:
        error_mappings = {
            400: "Sheet not found or invalid range.",
            401: "Sheets authorization expired. Please reconnect.",
            403: "Spreadsheet access denied. Please share it with the service account.",
            404: "Spreadsheet not found.",
            429: "Sheets rate limit exceeded. Please try again later.",
        }
        return error_mappings.get(status_code, f"Sheets error: {error_message}")

    async def get_values(
        self, access_token: str, spreadsheet_id: str, sheet_name: str
    ) -> list[list[Any]]:
        """
        Read every populated cell of a sheet tab.

        Args:
            access_token: Valid OAuth access token
            spreadsheet_id: Spreadsheet id (from the sheet URL)
            sheet_name: Tab name; the whole tab is read

        Returns:
            list[list]: Rows of cell values, first row is the header row

        Raises:
            GoogleSheetsError: If the request fails
        """
        url = f"{SHEETS_API_BASE_URL}/{spreadsheet_id}/values/{quote(sheet_name, safe='')}"
        headers = {"Authorization": f"Bearer {access_token}", "Accept": "application/json"}

        logger.info("Reading configuration sheet", sheet_name=sheet_name)

        try:
            response = await self._client.get(
                url, headers=headers, params={"majorDimension": "ROWS"}
            )
        except httpx.RequestError as e:
            raise GoogleSheetsError(f"Sheets network error: {e}") from e

        if not response.is_success:
            try:
                error_data = response.json() if response.text else {}
            except ValueError:
                error_data = {}
            error_message = error_data.get("error", {}).get("message", "Unknown Sheets API error")
            logger.error(
                "Sheets API get_values failed",
                status_code=response.status_code,
                error_message=error_message,
            )
            raise GoogleSheetsError(
                self._map_sheets_error(response.status_code, error_message),
                status_code=response.status_code,
                response_data=error_data,
            )

        try:
            data = response.json()
        except ValueError as e:
            raise GoogleSheetsError(f"Invalid response format: {e}") from e

        rows = data.get("values", [])
        logger.info("Configuration sheet read", sheet_name=sheet_name, row_count=len(rows))
        return rows

    async def health_check(self) -> dict[str, Any]:
        """Check Google Sheets API reachability."""
        health_data = {
            "healthy": True,
            "service": "google_sheets",
            "api_base_url": SHEETS_API_BASE_URL,
        }

        try:
            response = await self._client.request("HEAD", SHEETS_API_BASE_URL, timeout=5.0)
            health_data["api_connectivity"] = (
                "ok"
                if response.status_code in [200, 401, 403, 404]
                else f"error_{response.status_code}"
            )
        except httpx.RequestError as e:
            health_data["api_connectivity"] = f"error_{type(e).__name__}"
            health_data["healthy"] = False

        return health_data


# Singleton instance for application use
google_sheets_service = GoogleSheetsService()
