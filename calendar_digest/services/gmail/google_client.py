"""
Google Gmail API client for sending summary emails.
Low-level Gmail API client: builds the MIME message and posts it to
users/me/messages/send. No retries here; the caller's RetryExecutor owns them.
"""

import asyncio
import base64
import json
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any

import requests

from calendar_digest.infrastructure.observability.logging import get_logger

logger = get_logger(__name__)

# Google Gmail API configuration
GMAIL_API_BASE_URL = "https://gmail.googleapis.com/gmail/v1"
GMAIL_USER_ID = "me"

REQUEST_TIMEOUT = 30  # seconds


class GoogleGmailError(Exception):
    """Custom exception for Google Gmail API errors."""

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


class GoogleGmailService:
    """
    Service for sending mail through the Gmail API.

    Pure API client that handles HTTP requests, authentication and error
    mapping.
    """

    def __init__(self, session: requests.Session | None = None):
        self._session = session or requests.Session()

    def _get_auth_headers(self, access_token: str) -> dict:
        """Get authorization headers for Gmail API requests."""
        return {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _handle_api_response(self, response: requests.Response, operation: str) -> dict:
        """
        Handle and validate Gmail API response.

        Args:
            response: HTTP response from Gmail API
            operation: Operation name for logging

        Returns:
            dict: Parsed response data

        Raises:
            GoogleGmailError: If response contains errors
        """
        logger.debug(
            f"Gmail API {operation} response",
            status_code=response.status_code,
            response_size=len(response.text) if response.text else 0,
        )

        if response.ok:
            try:
                return response.json() if response.text else {}
            except ValueError as e:
                logger.error(f"Failed to parse Gmail API {operation} response", error=str(e))
                raise GoogleGmailError(f"Invalid response format: {e}") from e

        try:
            error_data = response.json() if response.text else {}
        except ValueError:
            error_data = {}

        error_info = error_data.get("error", {}) if isinstance(error_data, dict) else {}
        error_code = error_info.get("code", response.status_code)
        error_message = error_info.get("message", "Unknown Gmail API error")

        logger.error(
            f"Gmail API {operation} failed",
            status_code=response.status_code,
            error_code=error_code,
            error_message=error_message,
        )

        raise GoogleGmailError(
            self._map_gmail_error(response.status_code, error_message),
            error_code=str(error_code),
            status_code=response.status_code,
            response_data=error_data,
        )

    def _map_gmail_error(self, status_code: int, error_message: str) -> str:
        """Map Gmail API status codes to messages the retry policy understands."""
        error_mappings = {
            400: "Invalid Gmail request format.",
            401: "Gmail authorization expired. Please reconnect.",
            403: "Gmail access denied. Please check permissions.",
            429: "Gmail rate limit exceeded. Please try again later.",
            500: "Gmail internal error.",
            502: "Gmail service is currently unavailable.",
            503: "Gmail service is currently unavailable.",
            504: "Gmail service is currently unavailable.",
        }

        if status_code == 403 and "quota" in error_message.lower():
            return f"Gmail quota exceeded: {error_message}"

        return error_mappings.get(status_code, f"Gmail error: {error_message}")

    def build_raw_message(
        self,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        sender: str | None = None,
    ) -> str:
        """Build a base64url-encoded RFC 2822 message, multipart when HTML is given."""
        if html_body:
            msg = MIMEMultipart("alternative")
            msg.attach(MIMEText(body, "plain", "utf-8"))
            msg.attach(MIMEText(html_body, "html", "utf-8"))
        else:
            msg = MIMEText(body, "plain", "utf-8")

        msg["To"] = to
        msg["Subject"] = subject
        if sender:
            msg["From"] = sender

        return base64.urlsafe_b64encode(msg.as_bytes()).decode("utf-8")

    async def send_message(
        self,
        access_token: str,
        to: str,
        subject: str,
        body: str,
        html_body: str | None = None,
        sender: str | None = None,
    ) -> dict:
        """
        Send an email message.

        Args:
            access_token: Valid OAuth access token
            to: Recipient email address
            subject: Email subject
            body: Plain text body
            html_body: Optional HTML alternative
            sender: Optional From header

        Returns:
            dict: Sent message information

        Raises:
            GoogleGmailError: If sending message fails
        """
        raw_message = self.build_raw_message(to, subject, body, html_body, sender)
        url = f"{GMAIL_API_BASE_URL}/users/{GMAIL_USER_ID}/messages/send"
        headers = self._get_auth_headers(access_token)

        logger.info("Sending Gmail message", to=to, subject=subject, has_html=bool(html_body))

        try:
            response = await asyncio.to_thread(
                self._session.post,
                url,
                headers=headers,
                data=json.dumps({"raw": raw_message}),
                timeout=REQUEST_TIMEOUT,
            )
        except requests.exceptions.Timeout as e:
            raise GoogleGmailError(f"Gmail request timeout: {e}") from e
        except requests.exceptions.RequestException as e:
            raise GoogleGmailError(f"Gmail network error: {e}") from e

        data = self._handle_api_response(response, "send_message")
        logger.info("Message sent successfully", message_id=data.get("id"))
        return data

    def health_check(self) -> dict[str, Any]:
        """
        Check Google Gmail API reachability.

        Returns:
            Dict: Health status and configuration
        """
        health_data = {
            "healthy": True,
            "service": "google_gmail",
            "api_base_url": GMAIL_API_BASE_URL,
            "request_timeout": REQUEST_TIMEOUT,
        }

        try:
            response = requests.head(GMAIL_API_BASE_URL, timeout=5)
            health_data["api_connectivity"] = (
                "ok"
                if response.status_code in [200, 401, 403, 404]
                else f"error_{response.status_code}"
            )
        except requests.exceptions.RequestException as e:
            health_data["api_connectivity"] = f"error_{type(e).__name__}"
            health_data["healthy"] = False

        return health_data


# Singleton instance for application use
google_gmail_service = GoogleGmailService()
