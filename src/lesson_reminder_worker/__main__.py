'''
main entry point of the lesson reminder worker

    python -m lesson_reminder_worker            # worker loop (default)
    python -m lesson_reminder_worker scan       # one scan, prints the result
    python -m lesson_reminder_worker peek       # upcoming lessons, no side effects
    python -m lesson_reminder_worker remind ID  # send the join link for one lesson now
    python -m lesson_reminder_worker check-config
    python -m lesson_reminder_worker test-meet   # provision a sample meeting link
    python -m lesson_reminder_worker send-email TO SUBJECT BODY
'''
import argparse
import json
import os
import sys
import psycopg2
from datetime import datetime, timedelta
from dateutil.parser import isoparse
from dotenv import load_dotenv
from pytz import timezone

from lesson_reminder_worker.common.logger import logger
from lesson_reminder_worker.common.config import SCAN_INTERVAL_SECONDS, DEFAULT_TIMEZONE
from lesson_reminder_worker.common.errors import ReminderError
from lesson_reminder_worker.core.base_classes import Lesson, Party
from lesson_reminder_worker.database.db_handler import DatabaseHandler
from lesson_reminder_worker.apis.email_sender import build_email_sender
from lesson_reminder_worker.core.meeting_link import MeetingLinkProvisioner, build_meeting_provider
from lesson_reminder_worker.core.notification_dispatcher import NotificationDispatcher
from lesson_reminder_worker.core.reminder_scheduler import ReminderScheduler
from lesson_reminder_worker.core.schedule_runner import ScheduleRunner
from lesson_reminder_worker.core.send_ledger import DatabaseSendLedger


def build_runner(db_handler: DatabaseHandler, durable_ledger: bool = True) -> ScheduleRunner:
    """Wires the scheduler to the database, the email transport and the meeting provider."""
    ledger = None
    if durable_ledger:
        db_handler.ensure_reminder_table()
        ledger = DatabaseSendLedger(db_handler)
    else:
        logger.warning("Running without the durable send ledger: consecutive scans may send duplicates.")

    scheduler = ReminderScheduler(
        source=db_handler,
        dispatcher=NotificationDispatcher(build_email_sender()),
        provisioner=MeetingLinkProvisioner(build_meeting_provider(), tz=DEFAULT_TIMEZONE),
        ledger=ledger,
        tz=DEFAULT_TIMEZONE,
    )
    return ScheduleRunner(scheduler)


def check_config() -> dict:
    """Which integrations are configured. Never includes secret values."""
    load_dotenv()
    return {
        'database_configured': bool(os.getenv("DATABASE_URL")),
        'resend_configured': bool(os.getenv("RESEND_API_KEY")),
        'sender_email': os.getenv("SENDER_EMAIL", "Not configured"),
        'meeting_provider': os.getenv("MEETING_PROVIDER", "google"),
        'google_credentials_configured': bool(os.getenv("GOOGLE_CREDENTIALS_PATH")),
        'zoom_configured': all(os.getenv(key) for key in ("ZOOM_ACCOUNT_ID", "ZOOM_CLIENT_ID", "ZOOM_CLIENT_SECRET")),
        'lesson_timezone': DEFAULT_TIMEZONE,
    }


def provision_sample_meeting(student_email: str, tutor_email: str) -> dict:
    """
    Provisions a link for a sample lesson ten minutes from now, to check the
    meeting provider configuration end to end.
    """
    start = datetime.now(timezone(DEFAULT_TIMEZONE)) + timedelta(minutes=10)
    lesson = Lesson(
        id="config-test",
        status="confirmed",
        subject="Test Subject",
        date=start.date(),
        time=start.strftime('%H:%M'),
        duration=60,
        student_id="test-student",
        tutor_id="test-tutor",
    )
    student = Party(id="test-student", name="Test Student", email=student_email)
    tutor = Party(id="test-tutor", name="Test Tutor", email=tutor_email)

    result = MeetingLinkProvisioner(build_meeting_provider(), tz=DEFAULT_TIMEZONE).provision(lesson, student, tutor)
    return {'success': not result.degraded, **result.model_dump(mode='json')}


def parse_at(value: str | None) -> datetime | None:
    """Parses --at. Naive timestamps are read in the lesson timezone."""
    if value is None:
        return None
    at = isoparse(value)
    if at.tzinfo is None:
        at = timezone(DEFAULT_TIMEZONE).localize(at)
    return at


def main_routine(runner: ScheduleRunner, db_handler: DatabaseHandler, interval: float = SCAN_INTERVAL_SECONDS):
    """
    The background worker routine: scan, then wait for either the interval to
    pass or a manual trigger to arrive.
    """
    logger.info(f"Lesson reminder worker is starting (scan every {interval}s)...")
    try:
        while True:
            result = runner.run_once()
            if not result.success:
                logger.error(f"Scan failed: {result.error}")
            db_handler.listen_for_trigger(timeout=interval)

    except KeyboardInterrupt:
        logger.info("Worker shutting down gracefully due to user request (Ctrl+C).")
    except Exception as e:
        logger.exception(f"An unexpected error occurred in the main loop: {e}")
        sys.exit(1)


def parse_args(argv=None):
    parser = argparse.ArgumentParser(prog="lesson_reminder_worker", description="Lesson reminder scheduler")
    parser.add_argument('--no-ledger', action='store_true',
                        help="do not record sends in the database (reminders may repeat across scans)")
    subparsers = parser.add_subparsers(dest='command')

    worker = subparsers.add_parser('worker', help="run the scan loop (default)")
    worker.add_argument('--interval', type=float, default=SCAN_INTERVAL_SECONDS)
    scan = subparsers.add_parser('scan', help="run a single scan")
    peek = subparsers.add_parser('peek', help="list upcoming lessons without sending anything")
    for sub in (scan, peek):
        sub.add_argument('--at', help="evaluate as if it were this ISO 8601 time instead of now")
    remind = subparsers.add_parser('remind', help="send the join-link reminder for one lesson now")
    remind.add_argument('lesson_id')
    subparsers.add_parser('check-config', help="show which integrations are configured")
    test_meet = subparsers.add_parser('test-meet', help="provision a meeting link for a sample lesson")
    test_meet.add_argument('--student-email', default="test@example.com")
    test_meet.add_argument('--tutor-email', default="tutor@example.com")
    send_email = subparsers.add_parser('send-email', help="send one email through the configured transport")
    send_email.add_argument('to')
    send_email.add_argument('subject')
    send_email.add_argument('body')

    args = parser.parse_args(argv)
    if args.command is None:
        args.command = 'worker'
        args.interval = SCAN_INTERVAL_SECONDS
    return args


def main(argv=None) -> int:
    args = parse_args(argv)

    if args.command == 'check-config':
        print(json.dumps(check_config(), indent=2))
        return 0

    if args.command == 'test-meet':
        report = provision_sample_meeting(args.student_email, args.tutor_email)
        print(json.dumps(report, indent=2))
        return 0 if report['success'] else 1

    if args.command == 'send-email':
        ok = NotificationDispatcher(build_email_sender()).send(args.to, args.subject, args.body)
        print(json.dumps({'success': ok, 'to': args.to}))
        return 0 if ok else 1

    try:
        db_handler = DatabaseHandler()
        runner = build_runner(db_handler, durable_ledger=not args.no_ledger)
    except (ValueError, psycopg2.Error) as e:
        logger.critical(f"Worker failed to start due to database initialization error: {e}")
        return 1

    if args.command == 'worker':
        main_routine(runner, db_handler, interval=args.interval)
        return 0

    if args.command == 'scan':
        result = runner.run_once(parse_at(args.at))
        print(result.model_dump_json(indent=2))
        return 0 if result.success else 1

    if args.command == 'peek':
        try:
            rows = runner.peek(parse_at(args.at))
        except ReminderError as e:
            logger.error(f"Could not list upcoming lessons: {e}")
            return 1
        print(json.dumps([row.model_dump(mode='json') for row in rows], indent=2))
        return 0

    if args.command == 'remind':
        try:
            outcome = runner.scheduler.send_join_link(args.lesson_id)
        except ReminderError as e:
            logger.error(f"Could not send the join link: {e}")
            return 1
        if outcome is None:
            print(json.dumps({'success': False, 'message': "join link was already sent"}))
            return 1
        print(json.dumps({'success': outcome.ok, 'lesson_id': args.lesson_id, **outcome.model_dump(mode='json')}))
        return 0 if outcome.ok else 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
