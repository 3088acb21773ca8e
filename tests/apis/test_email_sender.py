'''
Tests for the Resend and console email transports
'''
import pytest
from unittest.mock import MagicMock
from requests.exceptions import HTTPError, Timeout

from lesson_reminder_worker.apis.email_sender import (
    ConsoleEmailSender,
    ResendEmailSender,
    build_email_sender,
)


@pytest.fixture
def mock_post(mocker):
    return mocker.patch("lesson_reminder_worker.apis.email_sender.requests.post")


@pytest.fixture
def sender():
    return ResendEmailSender(api_key="re_test", sender="lessons@example.com", timeout=3)


def test_sends_plain_text_email(sender, mock_post):
    mock_post.return_value.json.return_value = {'id': "email-123"}

    receipt = sender.send_email("sara@example.com", "Reminder", "Body")

    assert receipt == {'ok': True, 'id': "email-123"}
    _, kwargs = mock_post.call_args
    assert kwargs['json'] == {
        'from': "lessons@example.com",
        'to': ["sara@example.com"],
        'subject': "Reminder",
        'text': "Body",
    }
    assert kwargs['headers']['Authorization'] == "Bearer re_test"
    assert kwargs['timeout'] == 3


def test_http_error_is_reported(sender, mock_post):
    response = MagicMock(status_code=422, text="invalid to")
    response.raise_for_status.side_effect = HTTPError("422", response=response)
    mock_post.return_value = response

    assert sender.send_email("bad", "Reminder", "Body") == {'ok': False, 'id': None}


def test_timeout_is_reported(sender, mock_post):
    mock_post.side_effect = Timeout("slow")

    assert sender.send_email("sara@example.com", "Reminder", "Body")['ok'] is False


def test_missing_api_key_raises(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    with pytest.raises(ValueError):
        ResendEmailSender()


def test_build_falls_back_to_console(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    assert isinstance(build_email_sender(), ConsoleEmailSender)


def test_build_uses_resend_when_configured(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_live")
    assert isinstance(build_email_sender(), ResendEmailSender)


def test_console_sender_accepts_everything():
    assert ConsoleEmailSender().send_email("sara@example.com", "S", "B") == {'ok': True, 'id': None}
