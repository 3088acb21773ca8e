'''
Tests for the command line entry point
'''
import json
from unittest.mock import MagicMock

from lesson_reminder_worker import __main__ as cli
from lesson_reminder_worker.core.base_classes import ScanResult

from conftest import REAL_JOIN_URL, FakeMeetingProvider, RecordingTransport


def test_default_command_is_the_worker():
    args = cli.parse_args([])
    assert args.command == 'worker'
    assert args.interval == cli.SCAN_INTERVAL_SECONDS


def test_scan_accepts_a_reference_time():
    args = cli.parse_args(['scan', '--at', '2025-03-10T18:15'])

    at = cli.parse_at(args.at)

    assert (at.hour, at.minute) == (18, 15)
    assert at.tzinfo is not None


def test_parse_at_keeps_explicit_offsets():
    at = cli.parse_at('2025-03-10T16:15:00+00:00')
    assert at.utcoffset().total_seconds() == 0


def test_check_config_never_prints_secrets(monkeypatch, capsys):
    monkeypatch.setenv("RESEND_API_KEY", "re_super_secret")
    monkeypatch.setenv("DATABASE_URL", "postgresql://user:hunter2@db/lessons")

    assert cli.main(['check-config']) == 0

    output = capsys.readouterr().out
    report = json.loads(output)
    assert report['resend_configured'] is True
    assert report['database_configured'] is True
    assert "re_super_secret" not in output
    assert "hunter2" not in output


def test_scan_exits_non_zero_when_the_database_is_missing(mocker):
    mocker.patch.object(cli, 'DatabaseHandler', side_effect=ValueError("DATABASE_URL is not set"))
    assert cli.main(['scan']) == 1


def test_scan_prints_the_result(mocker, capsys):
    runner = MagicMock()
    runner.run_once.return_value = ScanResult(considered=2, fired=1)
    mocker.patch.object(cli, 'DatabaseHandler')
    mocker.patch.object(cli, 'build_runner', return_value=runner)

    assert cli.main(['scan']) == 0

    assert json.loads(capsys.readouterr().out)['fired'] == 1
    runner.run_once.assert_called_once_with(None)


def test_failed_scan_exits_non_zero(mocker):
    runner = MagicMock()
    runner.run_once.return_value = ScanResult(success=False, error="database is down")
    mocker.patch.object(cli, 'DatabaseHandler')
    mocker.patch.object(cli, 'build_runner', return_value=runner)

    assert cli.main(['--no-ledger', 'scan']) == 1
    cli.build_runner.assert_called_once_with(cli.DatabaseHandler.return_value, durable_ledger=False)


def test_remind_reports_an_already_sent_link(mocker, capsys):
    runner = MagicMock()
    runner.scheduler.send_join_link.return_value = None
    mocker.patch.object(cli, 'DatabaseHandler')
    mocker.patch.object(cli, 'build_runner', return_value=runner)

    assert cli.main(['remind', 'lesson-1']) == 1
    assert "already sent" in capsys.readouterr().out


def test_worker_loop_scans_between_triggers(mocker):
    runner = MagicMock()
    runner.run_once.return_value = ScanResult()
    db_handler = MagicMock()
    db_handler.listen_for_trigger.side_effect = [None, "manual", KeyboardInterrupt()]

    cli.main_routine(runner, db_handler, interval=0.1)

    assert runner.run_once.call_count == 3
    db_handler.listen_for_trigger.assert_called_with(timeout=0.1)


def test_meet_command_prints_the_provisioned_link(mocker, capsys):
    provider = FakeMeetingProvider()
    mocker.patch.object(cli, 'build_meeting_provider', return_value=provider)
    database = mocker.patch.object(cli, 'DatabaseHandler')

    assert cli.main(['test-meet', '--student-email', "sara@example.com"]) == 0

    report = json.loads(capsys.readouterr().out)
    assert report['success'] is True
    assert report['link'] == REAL_JOIN_URL
    assert report['degraded'] is False
    assert provider.calls[0]['attendee_emails'] == ["sara@example.com", "tutor@example.com"]
    database.assert_not_called()


def test_meet_command_reports_a_degraded_link(mocker, capsys):
    mocker.patch.object(cli, 'build_meeting_provider', return_value=None)

    assert cli.main(['test-meet']) == 1

    report = json.loads(capsys.readouterr().out)
    assert report['degraded'] is True
    assert report['link'].startswith("https://meet.google.com/tutorconnect-")
    assert report['reason']


def test_send_email_goes_through_the_transport(mocker, capsys):
    transport = RecordingTransport()
    mocker.patch.object(cli, 'build_email_sender', return_value=transport)

    assert cli.main(['send-email', "sara@example.com", "Hello", "Lesson moved to 7 PM"]) == 0

    assert transport.sent == [{'to': "sara@example.com", 'subject': "Hello", 'body': "Lesson moved to 7 PM"}]
    assert json.loads(capsys.readouterr().out) == {'success': True, 'to': "sara@example.com"}


def test_send_email_rejected_by_the_transport(mocker, capsys):
    mocker.patch.object(cli, 'build_email_sender', return_value=RecordingTransport(failing={"sara@example.com"}))

    assert cli.main(['send-email', "sara@example.com", "Hello", "Body"]) == 1
    assert json.loads(capsys.readouterr().out)['success'] is False
