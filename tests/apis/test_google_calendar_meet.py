'''
Tests for creating Google Calendar events with a Meet conference
'''
import pytest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
from googleapiclient.errors import HttpError

from lesson_reminder_worker.apis.google_calendar_meet import GoogleCalendarManager

MODULE = "lesson_reminder_worker.apis.google_calendar_meet"


@pytest.fixture
def calendar_service(mocker, monkeypatch):
    monkeypatch.setenv("GOOGLE_CREDENTIALS_PATH", "/secrets/service-account.json")
    monkeypatch.setenv("GOOGLE_CALENDAR_ID", "tutoring@example.com")
    mocker.patch(f"{MODULE}.service_account.Credentials.from_service_account_file")
    service = MagicMock()
    mocker.patch(f"{MODULE}.build", return_value=service)
    return service


@pytest.fixture
def times(tz):
    start = tz.localize(datetime(2025, 3, 10, 19, 0))
    return start, start + timedelta(minutes=60)


def test_create_meeting_returns_the_video_entry_point(calendar_service, times):
    calendar_service.events.return_value.insert.return_value.execute.return_value = {
        'conferenceData': {'entryPoints': [
            {'entryPointType': 'phone', 'uri': 'tel:+1-555'},
            {'entryPointType': 'video', 'uri': 'https://meet.google.com/abc-defg-hij'},
        ]}
    }
    manager = GoogleCalendarManager()

    join_url = manager.create_meeting("Mathematics", *times, ["sara@example.com", "omar@example.com"])

    assert join_url == "https://meet.google.com/abc-defg-hij"
    _, kwargs = calendar_service.events.return_value.insert.call_args
    assert kwargs['calendarId'] == "tutoring@example.com"
    assert kwargs['conferenceDataVersion'] == 1
    body = kwargs['body']
    assert body['attendees'] == [{'email': "sara@example.com"}, {'email': "omar@example.com"}]
    assert body['conferenceData']['createRequest']['conferenceSolutionKey'] == {'type': 'hangoutsMeet'}
    assert body['start']['timeZone'] == "Africa/Cairo"
    assert body['end']['dateTime'].startswith("2025-03-10T20:00")


def test_event_without_conference_returns_none(calendar_service, times):
    calendar_service.events.return_value.insert.return_value.execute.return_value = {'htmlLink': 'x'}

    assert GoogleCalendarManager().create_meeting("Mathematics", *times, []) is None


def test_http_error_returns_none(calendar_service, times):
    error = HttpError(resp=MagicMock(status=403, reason="Forbidden"), content=b'{"error": "forbidden"}')
    calendar_service.events.return_value.insert.return_value.execute.side_effect = error

    assert GoogleCalendarManager().create_meeting("Mathematics", *times, []) is None


def test_failed_authentication_leaves_no_service(mocker, monkeypatch, times):
    monkeypatch.setenv("GOOGLE_CREDENTIALS_PATH", "/missing.json")
    mocker.patch(
        f"{MODULE}.service_account.Credentials.from_service_account_file",
        side_effect=FileNotFoundError("/missing.json"),
    )

    manager = GoogleCalendarManager()

    assert manager.service is None
    assert manager.create_meeting("Mathematics", *times, []) is None


def test_missing_credentials_path_raises(monkeypatch):
    monkeypatch.delenv("GOOGLE_CREDENTIALS_PATH", raising=False)
    with pytest.raises(ValueError):
        GoogleCalendarManager()
