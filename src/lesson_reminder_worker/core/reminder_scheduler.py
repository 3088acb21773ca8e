'''
This file decides which lesson reminders are due and fires them.

Every scan is a pure function of "now" and the current lesson rows: it does
not care how often it is called. The 1-minute window is only hit reliably if
scans happen at least once a minute.
'''
import math
from datetime import datetime, timedelta
from pytz import timezone as pytz_timezone
from pytz.tzinfo import BaseTzInfo

from ..common.logger import logger
from ..common.config import DEFAULT_TIMEZONE, LOOKAHEAD_HOURS
from ..common.errors import (
    LessonNotFoundError,
    PartyLookupError,
    SourceUnavailableError,
    TimeParseError,
)
from . import messages
from .base_classes import (
    DispatchOutcome,
    Lesson,
    Party,
    ReminderWindow,
    ScanResult,
    UpcomingLesson,
)
from .meeting_link import MeetingLinkProvisioner
from .notification_dispatcher import NotificationDispatcher
from .send_ledger import InMemorySendLedger
from .time_normalizer import lesson_start


def minutes_remaining(start: datetime, now: datetime) -> int:
    """Whole minutes until `start`, floor-truncated (30s -> 0, -30s -> -1)."""
    return math.floor((start - now).total_seconds() / 60)


def format_minutes(minutes: int) -> str:
    if minutes <= 0:
        return "Started"
    hours, mins = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {mins}m"
    return f"{mins}m"


def _until(delta: timedelta) -> str:
    minutes = math.floor(delta.total_seconds() / 60)
    return format_minutes(minutes) if minutes > 0 else "under 1m"


def format_remaining(remaining: timedelta) -> str:
    """Like format_minutes, but a lesson only counts as started once its start has passed."""
    if remaining <= timedelta(0):
        return "Started"
    return _until(remaining)


def describe_timing(remaining: timedelta) -> tuple[str, str]:
    """Returns (status, next action) for a lesson `remaining` away from its start."""
    if remaining <= timedelta(0):
        return "started", "Lesson has started"
    if ReminderWindow.ONE_MINUTE.is_due(remaining):
        return "starting-soon", "meeting link due now"
    if ReminderWindow.ONE_HOUR.is_due(remaining):
        return "starting-soon", f"meeting link in {_until(remaining - ReminderWindow.ONE_MINUTE.upper_bound)}"
    return "upcoming", f"1-hour reminder in {_until(remaining - ReminderWindow.ONE_HOUR.upper_bound)}"


class ReminderScheduler:
    """
    Scans confirmed lessons and sends the 1-hour and the 1-minute (join link)
    reminders whose window is open.

    `source` must provide list_confirmed_lessons(), get_lesson(id) and
    get_user(id) (see DatabaseHandler). Without an injected `ledger`, sends
    are only deduplicated within a single scan.
    """
    def __init__(self,
            source,
            dispatcher: NotificationDispatcher,
            provisioner: MeetingLinkProvisioner,
            ledger=None,
            tz: str | BaseTzInfo = DEFAULT_TIMEZONE,
            lookahead: timedelta = timedelta(hours=LOOKAHEAD_HOURS)):
        self.source = source
        self.dispatcher = dispatcher
        self.provisioner = provisioner
        self.ledger = ledger
        self.tz = pytz_timezone(tz) if isinstance(tz, str) else tz
        self.lookahead = lookahead

    def _now(self, now: datetime | None) -> datetime:
        return now if now is not None else datetime.now(self.tz)

    def _fetch_lessons(self) -> list[Lesson]:
        try:
            return self.source.list_confirmed_lessons()
        except SourceUnavailableError:
            raise
        except Exception as e:
            raise SourceUnavailableError(f"Could not fetch confirmed lessons: {e}") from e

    def _candidates(self, lessons: list[Lesson], now: datetime, result: ScanResult | None = None):
        """Yields (lesson, start) for confirmed lessons starting within the lookahead."""
        horizon = now + self.lookahead
        for lesson in lessons:
            if not lesson.is_candidate:
                continue
            try:
                start = lesson_start(lesson.lesson_date, lesson.time_label, self.tz)
            except TimeParseError as e:
                logger.error(f"Skipping lesson {lesson.lesson_id}: {e}")
                if result is not None:
                    result.skipped += 1
                continue

            if start <= now:
                logger.debug(f"Lesson {lesson.lesson_id} started at {start.isoformat()}; its reminder windows have elapsed.")
            elif start <= horizon:
                yield lesson, start

    def _party(self, lesson: Lesson, user_id: str, role: str) -> Party:
        try:
            party = self.source.get_user(user_id)
        except Exception as e:
            logger.error(f"Looking up {role} '{user_id}' for lesson {lesson.lesson_id} failed: {e!r}")
            raise PartyLookupError(lesson.lesson_id, user_id, role) from e
        if party is None:
            raise PartyLookupError(lesson.lesson_id, user_id, role)
        return party

    def _parties(self, lesson: Lesson) -> tuple[Party, Party]:
        student = self._party(lesson, lesson.student_id, "student")
        tutor = self._party(lesson, lesson.tutor_id, "tutor")
        return student, tutor

    def _fire(self, window: ReminderWindow, lesson: Lesson, student: Party, tutor: Party, ledger, result: ScanResult):
        """Sends one window's reminder if this caller wins the ledger claim."""
        if not ledger.claim(lesson.lesson_id, window):
            logger.info(f"{window.value} reminder for lesson {lesson.lesson_id} was already sent. Skipping.")
            return None

        if window is ReminderWindow.ONE_MINUTE:
            meeting = self.provisioner.provision(lesson, student, tutor)
            if meeting.degraded:
                result.degraded_links += 1
            subject, body = messages.join_link_reminder(lesson, student, tutor, meeting.link)
        else:
            subject, body = messages.one_hour_reminder(lesson, student, tutor)

        outcome = self.dispatcher.send_pair(window, student, tutor, subject, body)
        result.fired += 1
        result.sends_failed += outcome.failures

        if not outcome.student_ok and not outcome.tutor_ok:
            # Nobody got it; let a later scan inside the window try again
            ledger.release(lesson.lesson_id, window)

        logger.info(f"Sent {window.value} reminder for lesson {lesson.lesson_id} (all delivered: {outcome.ok})")
        return outcome

    def scan(self, now: datetime | None = None) -> ScanResult:
        """
        Runs one evaluation pass over all candidate lessons.

        Raises:
            SourceUnavailableError: if the lessons could not be fetched. Problems
            with a single lesson are logged and counted instead.
        """
        now = self._now(now)
        ledger = self.ledger if self.ledger is not None else InMemorySendLedger()
        result = ScanResult(started_at=now)

        lessons = self._fetch_lessons()
        if not lessons:
            logger.info("No confirmed lessons. Nothing to do.")
            return result

        for lesson, start in self._candidates(lessons, now, result):
            result.considered += 1
            try:
                student, tutor = self._parties(lesson)
            except PartyLookupError as e:
                logger.warning(f"Skipping lesson {lesson.lesson_id}: {e}")
                result.skipped += 1
                continue

            remaining = start - now
            for window in ReminderWindow:
                if window.is_due(remaining):
                    self._fire(window, lesson, student, tutor, ledger, result)

        logger.info(
            f"Scan finished: {result.considered} considered, {result.fired} fired, "
            f"{result.sends_failed} sends failed, {result.skipped} skipped."
        )
        return result

    def upcoming(self, now: datetime | None = None) -> list[UpcomingLesson]:
        """Read-only view of the candidate lessons and what happens next for each."""
        now = self._now(now)
        upcoming = []
        for lesson, start in self._candidates(self._fetch_lessons(), now):
            remaining = start - now
            status, next_action = describe_timing(remaining)
            pending = [
                window for window in ReminderWindow
                if not (self.ledger is not None and self.ledger.has_fired(lesson.lesson_id, window))
            ]
            minutes = minutes_remaining(start, now)
            upcoming.append(UpcomingLesson(
                lesson_id=lesson.lesson_id,
                subject=lesson.subject,
                starts_at=start,
                minutes_remaining=minutes,
                status=status,
                time_until=format_remaining(remaining),
                next_action=next_action,
                pending_windows=pending,
            ))
        return sorted(upcoming, key=lambda row: row.starts_at)

    def send_join_link(self, lesson_id: str, now: datetime | None = None) -> DispatchOutcome | None:
        """
        Sends the join-link reminder for one lesson right away, whatever the
        time. Returns None if it had already been sent.

        Raises:
            LessonNotFoundError: if there is no such lesson.
            PartyLookupError: if the student or tutor is missing.
        """
        lesson = self.source.get_lesson(lesson_id)
        if lesson is None:
            raise LessonNotFoundError(lesson_id)

        student, tutor = self._parties(lesson)
        ledger = self.ledger if self.ledger is not None else InMemorySendLedger()
        result = ScanResult(started_at=self._now(now))
        return self._fire(ReminderWindow.ONE_MINUTE, lesson, student, tutor, ledger, result)
