"""
Google Calendar API client for reading calendars and events.
Low-level Calendar API client: one HTTP call per operation, no retries.
Retrying is owned by the caller (RetryExecutor), so error messages here are
worded to line up with its transient-error patterns.
"""

from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from calendar_digest.infrastructure.observability.logging import get_logger
from calendar_digest.models.domain.calendar_domain import CalendarEvent, CalendarInfo

logger = get_logger(__name__)

# Google Calendar API configuration
CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

REQUEST_TIMEOUT = 30  # seconds (calendar operations can be slower)
MAX_PAGE_SIZE = 250
MAX_PAGES = 20


class GoogleCalendarError(Exception):
    """Custom exception for Google Calendar API errors."""

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message)
        self.error_code = error_code
        self.status_code = status_code
        self.response_data = response_data or {}


class GoogleCalendarService:
    """
    Service for read-only Google Calendar API operations.

    Handles calendar metadata lookup and event listing for a time window,
    mapping API failures onto GoogleCalendarError.
    """

    def __init__(self, client: httpx.AsyncClient | None = None):
        self._client = client or self._create_client()

    def _create_client(self) -> httpx.AsyncClient:
        """Create async HTTP client for Calendar API."""
        timeout = httpx.Timeout(REQUEST_TIMEOUT)
        limits = httpx.Limits(max_keepalive_connections=10, max_connections=20)
        return httpx.AsyncClient(timeout=timeout, limits=limits)

    async def close(self) -> None:
        """Close the underlying HTTP client."""
        await self._client.aclose()

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Calendar API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/json",
        }

    async def _request(self, method: str, url: str, operation: str, **kwargs) -> httpx.Response:
        """Send one request, translating transport failures into GoogleCalendarError."""
        try:
            return await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            logger.warning(f"Calendar API {operation} timed out", error=str(e))
            raise GoogleCalendarError(f"Calendar request timeout during {operation}: {e}") from e
        except httpx.RequestError as e:
            logger.warning(f"Calendar API {operation} network failure", error=str(e))
            raise GoogleCalendarError(f"Calendar network error during {operation}: {e}") from e

    def _handle_api_response(self, response: httpx.Response, operation: str) -> dict:
        """
        Handle and validate Calendar API response.

        Args:
            response: HTTP response from Calendar API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleCalendarError: If response contains errors
        """
        logger.debug(
            f"Calendar API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.is_success:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Calendar API {operation} response", error=str(e))
                raise GoogleCalendarError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            error_data = {}

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        error_code = error_info.get("code", response.status_code)
        error_message = error_info.get("message", "Unknown Calendar API error")

        logger.error(
            f"Calendar API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleCalendarError(
            self._map_calendar_error(response.status_code, error_message),
            error_code=str(error_code),
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_calendar_error(self, status_code: int, error_message: str) -> str:
        """Map Calendar API status codes to messages the retry policy understands."""
        error_mappings = {
            400: "Invalid calendar request format.",
            401: "Calendar authorization expired. Please reconnect.",
            403: "Calendar access denied. Please check permissions.",
            404: "Calendar or event not found.",
            429: "Calendar rate limit exceeded. Please try again later.",
            500: "Google Calendar internal error.",
            502: "Google Calendar service is currently unavailable.",
            503: "Google Calendar service is currently unavailable.",
            504: "Google Calendar service is currently unavailable.",
        }

        # 403 quota responses carry the quota wording in the message itself
        if status_code == 403 and "quota" in error_message.lower():
            return f"Calendar quota exceeded: {error_message}"

        return error_mappings.get(status_code, f"Calendar error: {error_message}")

    async def get_calendar(self, access_token: str, calendar_id: str) -> CalendarInfo:
        """
        Get metadata for a calendar by its external id.

        Args:
            access_token: Valid OAuth access token
            calendar_id: Calendar ID (address-shaped)

        Returns:
            CalendarInfo: Calendar information

        Raises:
            GoogleCalendarError: If getting calendar fails
        """
        url = f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}"
        headers = self._get_auth_headers(access_token)

        logger.info("Getting calendar info", calendar_id=calendar_id)

        response = await self._request("GET", url, "get_calendar", headers=headers)
        data = self._handle_api_response(response, "get_calendar")

        calendar_info = CalendarInfo(data)
        logger.debug("Calendar info retrieved", calendar_id=calendar_id, name=calendar_info.name)
        return calendar_info

    async def list_events(
        self,
        access_token: str,
        calendar_id: str,
        time_min: datetime,
        time_max: datetime,
    ) -> list[CalendarEvent]:
        """
        List events overlapping [time_min, time_max), recurring events expanded.

        Args:
            access_token: Valid OAuth access token
            calendar_id: Calendar ID
            time_min: Window start (inclusive)
            time_max: Window end (exclusive)

        Returns:
            List[CalendarEvent]: Events ordered by start time

        Raises:
            GoogleCalendarError: If listing events fails
        """
        url = f"{CALENDAR_API_BASE_URL}/calendars/{quote(calendar_id, safe='')}/events"
        headers = self._get_auth_headers(access_token)

        params: dict[str, Any] = {
            "maxResults": MAX_PAGE_SIZE,
            "singleEvents": "true",
            "orderBy": "startTime",
            "timeMin": time_min.isoformat(),
            "timeMax": time_max.isoformat(),
        }

        logger.info(
            "Listing calendar events",
            calendar_id=calendar_id,
            time_min=params["timeMin"],
            time_max=params["timeMax"],
        )

        events: list[CalendarEvent] = []
        for _ in range(MAX_PAGES):
            response = await self._request(
                "GET", url, "list_events", headers=headers, params=params
            )
            data = self._handle_api_response(response, "list_events")

            for item in data.get("items", []):
                if item.get("status") == "cancelled":
                    continue
                events.append(CalendarEvent(item))

            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token
        else:
            logger.warning("Event listing truncated", calendar_id=calendar_id, max_pages=MAX_PAGES)

        logger.info("Events listed", calendar_id=calendar_id, event_count=len(events))
        return events

    async def health_check(self) -> dict[str, Any]:
        """
        Check Google Calendar API reachability.

        Returns:
            Dict: Health status and configuration
        """
        health_data = {
            "healthy": True,
            "service": "google_calendar",
            "api_base_url": CALENDAR_API_BASE_URL,
            "request_timeout": REQUEST_TIMEOUT,
        }

        try:
            response = await self._client.request("HEAD", CALENDAR_API_BASE_URL, timeout=5.0)
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
google_calendar_service = GoogleCalendarService()
