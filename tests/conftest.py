import threading
import pytest
from datetime import datetime, timedelta
from pytz import timezone

from lesson_reminder_worker.common.errors import SourceUnavailableError
from lesson_reminder_worker.core.base_classes import Lesson, Party
from lesson_reminder_worker.core.meeting_link import MeetingLinkProvisioner
from lesson_reminder_worker.core.notification_dispatcher import NotificationDispatcher
from lesson_reminder_worker.core.reminder_scheduler import ReminderScheduler

TZ_NAME = "Africa/Cairo"
REAL_JOIN_URL = "https://meet.google.com/abc-defg-hij"


class FakeLessonSource:
    """In-memory stand-in for DatabaseHandler's read side."""
    def __init__(self, lessons=(), users=()):
        self.lessons = list(lessons)
        self.users = {user.user_id: user for user in users}
        self.fail_with = None
        self.list_calls = 0
        self.user_lookups = []
        self.user_errors = {}

    def list_confirmed_lessons(self):
        self.list_calls += 1
        if self.fail_with:
            raise self.fail_with
        return list(self.lessons)

    def get_lesson(self, lesson_id):
        return next((lesson for lesson in self.lessons if lesson.lesson_id == lesson_id), None)

    def get_user(self, user_id):
        self.user_lookups.append(user_id)
        if user_id in self.user_errors:
            raise self.user_errors[user_id]
        return self.users.get(user_id)


class RecordingTransport:
    """Email transport that records every message. Addresses in `failing` are rejected."""
    def __init__(self, failing=()):
        self.sent = []
        self.failing = set(failing)
        self._lock = threading.Lock()

    def send_email(self, to, subject, body):
        with self._lock:
            self.sent.append({'to': to, 'subject': subject, 'body': body})
            count = len(self.sent)
        if to in self.failing:
            return {'ok': False, 'id': None}
        return {'ok': True, 'id': f"email-{count}"}


class FakeMeetingProvider:
    name = "fake"

    def __init__(self, join_url=REAL_JOIN_URL, error=None):
        self.join_url = join_url
        self.error = error
        self.calls = []

    def create_meeting(self, subject, start, end, attendee_emails, description=""):
        self.calls.append({
            'subject': subject,
            'start': start,
            'end': end,
            'attendee_emails': attendee_emails,
            'description': description,
        })
        if self.error:
            raise self.error
        return self.join_url


@pytest.fixture
def tz():
    return timezone(TZ_NAME)


@pytest.fixture
def now(tz) -> datetime:
    """Monday 10 March 2025, 18:15 in the lesson timezone."""
    return tz.localize(datetime(2025, 3, 10, 18, 15))


@pytest.fixture
def student() -> Party:
    return Party(id="student-1", name="Sara Student", email="sara@example.com")


@pytest.fixture
def tutor() -> Party:
    return Party(id="tutor-1", name="Omar Tutor", email="omar@example.com")


@pytest.fixture
def make_lesson(student, tutor):
    """Builds a lesson starting at `start` (an aware datetime)."""
    def _make(start: datetime, lesson_id="lesson-1", time_label=None, **overrides) -> Lesson:
        data = {
            'id': lesson_id,
            'status': "confirmed",
            'subject': "Mathematics",
            'date': start.date(),
            'time': time_label or start.strftime('%H:%M'),
            'duration': 60,
            'student_id': student.user_id,
            'tutor_id': tutor.user_id,
        }
        data.update(overrides)
        return Lesson(**data)
    return _make


@pytest.fixture
def source(student, tutor) -> FakeLessonSource:
    return FakeLessonSource(users=[student, tutor])


@pytest.fixture
def transport() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def provider() -> FakeMeetingProvider:
    return FakeMeetingProvider()


@pytest.fixture
def build_scheduler(source, transport, provider, tz):
    def _build(ledger=None, meeting_provider=provider, email_transport=transport) -> ReminderScheduler:
        return ReminderScheduler(
            source=source,
            dispatcher=NotificationDispatcher(email_transport),
            provisioner=MeetingLinkProvisioner(meeting_provider, tz=tz),
            ledger=ledger,
            tz=tz,
            lookahead=timedelta(hours=2),
        )
    return _build


@pytest.fixture
def scheduler(build_scheduler) -> ReminderScheduler:
    return build_scheduler()


@pytest.fixture
def source_down():
    return SourceUnavailableError("database is down")
