import base64
import json
import re
from datetime import UTC, datetime
from email import message_from_bytes
from unittest.mock import MagicMock

import pytest

from calendar_digest.features.daily_summary.services.retry import is_retryable_error
from calendar_digest.services.calendar.google_client import GoogleCalendarError, GoogleCalendarService
from calendar_digest.services.calendar.source import GoogleCalendarSource
from calendar_digest.services.gmail.google_client import GoogleGmailError, GoogleGmailService
from calendar_digest.services.sheets.google_client import GoogleSheetsError, GoogleSheetsService

CALENDAR_URL = re.compile(r"https://www\.googleapis\.com/calendar/v3/calendars/team%40example\.com$")
EVENTS_FIRST_PAGE_URL = re.compile(
    r"https://www\.googleapis\.com/calendar/v3/calendars/team%40example\.com/events\?(?!.*pageToken)"
)
EVENTS_SECOND_PAGE_URL = re.compile(
    r"https://www\.googleapis\.com/calendar/v3/calendars/team%40example\.com/events\?.*pageToken=page-2"
)
SHEET_URL = re.compile(r"https://sheets\.googleapis\.com/v4/spreadsheets/sheet-id/values/Config\?.*")

WINDOW_START = datetime(2024, 1, 10, tzinfo=UTC)
WINDOW_END = datetime(2024, 1, 11, tzinfo=UTC)


def _event(event_id, summary, hour, status="confirmed"):
    return {
        "id": event_id,
        "status": status,
        "summary": summary,
        "start": {"dateTime": f"2024-01-10T{hour:02d}:00:00Z"},
        "end": {"dateTime": f"2024-01-10T{hour:02d}:30:00Z"},
    }


@pytest.mark.asyncio
async def test_calendar_get_calendar_success(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=CALENDAR_URL,
        json={"id": "team@example.com", "summary": "Team Calendar", "accessRole": "reader"},
    )

    info = await service.get_calendar("token", "team@example.com")
    await service.close()

    assert info.name == "Team Calendar"
    request = httpx_mock.get_requests()[0]
    assert request.headers["Authorization"] == "Bearer token"


@pytest.mark.asyncio
async def test_calendar_list_events_follows_pages_and_skips_cancelled(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_FIRST_PAGE_URL,
        json={
            "items": [_event("e1", "Standup", 9), _event("e2", "Dropped", 10, status="cancelled")],
            "nextPageToken": "page-2",
        },
    )
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_SECOND_PAGE_URL,
        json={"items": [_event("e3", "Review", 15)]},
    )

    events = await service.list_events("token", "team@example.com", WINDOW_START, WINDOW_END)
    await service.close()

    assert [e.id for e in events] == ["e1", "e3"]
    first = httpx_mock.get_requests()[0]
    assert first.url.params["singleEvents"] == "true"
    assert first.url.params["orderBy"] == "startTime"
    assert first.url.params["timeMin"] == WINDOW_START.isoformat()
    assert first.url.params["timeMax"] == WINDOW_END.isoformat()


@pytest.mark.asyncio
async def test_calendar_unavailable_is_retryable(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=CALENDAR_URL,
        status_code=503,
        json={"error": {"code": 503, "message": "Backend Error"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.get_calendar("token", "team@example.com")
    await service.close()

    assert exc.value.status_code == 503
    assert is_retryable_error(exc.value)


@pytest.mark.asyncio
async def test_calendar_access_denied_is_not_retryable(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=CALENDAR_URL,
        status_code=403,
        json={"error": {"code": 403, "message": "Forbidden"}},
    )

    with pytest.raises(GoogleCalendarError) as exc:
        await service.get_calendar("token", "team@example.com")
    await service.close()

    assert "access denied" in str(exc.value).lower()
    assert not is_retryable_error(exc.value)


@pytest.mark.asyncio
async def test_calendar_source_maps_not_found_to_none(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=CALENDAR_URL,
        status_code=404,
        json={"error": {"code": 404, "message": "Not Found"}},
    )
    source = GoogleCalendarSource("token", service=service)

    calendar = await source.get_calendar_by_external_id("team@example.com")
    await service.close()

    assert calendar is None


@pytest.mark.asyncio
async def test_calendar_source_handle_fetches_window(httpx_mock):
    service = GoogleCalendarService()
    httpx_mock.add_response(
        method="GET",
        url=CALENDAR_URL,
        json={"id": "team@example.com", "summary": "Team Calendar"},
    )
    httpx_mock.add_response(
        method="GET",
        url=EVENTS_FIRST_PAGE_URL,
        json={"items": [_event("e1", "Standup", 9)]},
    )
    source = GoogleCalendarSource("token", service=service)

    calendar = await source.get_calendar_by_external_id("team@example.com")
    events = await calendar.fetch_events(WINDOW_START, WINDOW_END)
    await service.close()

    assert calendar.name == "Team Calendar"
    assert [e.title for e in events] == ["Standup"]


@pytest.mark.asyncio
async def test_sheets_get_values(httpx_mock):
    service = GoogleSheetsService()
    httpx_mock.add_response(
        method="GET",
        url=SHEET_URL,
        json={
            "range": "Config!A1:B2",
            "majorDimension": "ROWS",
            "values": [["Recipient Email", "Calendar ID"], ["a@example.com", "a@example.com"]],
        },
    )

    rows = await service.get_values("token", "sheet-id", "Config")
    await service.close()

    assert rows == [["Recipient Email", "Calendar ID"], ["a@example.com", "a@example.com"]]


@pytest.mark.asyncio
async def test_sheets_error_mapping(httpx_mock):
    service = GoogleSheetsService()
    httpx_mock.add_response(
        method="GET",
        url=SHEET_URL,
        status_code=400,
        json={"error": {"code": 400, "message": "Unable to parse range: Config"}},
    )

    with pytest.raises(GoogleSheetsError) as exc:
        await service.get_values("token", "sheet-id", "Config")
    await service.close()

    assert exc.value.status_code == 400
    assert str(exc.value) == "Sheet not found or invalid range."


def _gmail_response(status_code=200, payload=None):
    response = MagicMock()
    response.status_code = status_code
    response.ok = status_code < 400
    response.text = json.dumps(payload or {})
    response.json.return_value = payload or {}
    return response


@pytest.mark.asyncio
async def test_gmail_send_posts_multipart_message():
    session = MagicMock()
    session.post.return_value = _gmail_response(payload={"id": "msg-1", "threadId": "t-1"})
    service = GoogleGmailService(session=session)

    result = await service.send_message(
        "token",
        to="jane@example.com",
        subject="Your Events for the Day",
        body="Hello jane,",
        html_body="<p>Hello jane,</p>",
        sender="digest@example.com",
    )

    assert result["id"] == "msg-1"
    url = session.post.call_args.args[0]
    assert url == "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    raw = json.loads(session.post.call_args.kwargs["data"])["raw"]
    message = message_from_bytes(base64.urlsafe_b64decode(raw))
    assert message["To"] == "jane@example.com"
    assert message["From"] == "digest@example.com"
    assert message.get_content_type() == "multipart/alternative"


@pytest.mark.asyncio
async def test_gmail_rate_limit_is_retryable():
    session = MagicMock()
    session.post.return_value = _gmail_response(
        429, {"error": {"code": 429, "message": "Rate Limit Exceeded"}}
    )
    service = GoogleGmailService(session=session)

    with pytest.raises(GoogleGmailError) as exc:
        await service.send_message("token", to="jane@example.com", subject="s", body="b")

    assert exc.value.status_code == 429
    assert is_retryable_error(exc.value)
