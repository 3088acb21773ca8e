'''
This file is responsible to provision the meeting link sent with the
1-minute reminder.

A real meeting is requested from the configured provider (Google Meet or
Zoom). When that is impossible a synthetic Meet-style link is generated so
the reminder still goes out. Callers can tell the two apart through
ProvisionResult.degraded.
'''
import os
import re
import secrets
import string
from datetime import timedelta
from dotenv import load_dotenv
from pytz.tzinfo import BaseTzInfo

from ..common.logger import logger
from ..common.config import BRAND_NAME, DEFAULT_TIMEZONE, MEET_LINK_PREFIX
from ..apis.google_calendar_meet import GoogleCalendarManager
from ..apis.zoom_meeting import ZoomMeetingManager
from .base_classes import Lesson, Party, ProvisionResult
from .time_normalizer import lesson_start

FALLBACK_LINK_PATTERN = re.compile(
    rf'^https://meet\.google\.com/{MEET_LINK_PREFIX}-[a-z0-9]+-\d{{8}}-[a-z0-9]{{6}}$'
)

_TOKEN_ALPHABET = string.ascii_lowercase + string.digits

PROVIDERS = {
    'google': GoogleCalendarManager,
    'zoom': ZoomMeetingManager,
}


def build_meeting_provider(provider_name: str | None = None):
    """
    Instantiates the provider named by MEETING_PROVIDER (default 'google').
    Returns None when it is disabled or not configured.
    """
    load_dotenv()
    provider_name = (provider_name or os.getenv("MEETING_PROVIDER", "google")).lower()
    if provider_name == 'none':
        logger.info("Meeting provider disabled. Fallback links will be used.")
        return None

    provider_cls = PROVIDERS.get(provider_name)
    if provider_cls is None:
        logger.error(f"Unknown MEETING_PROVIDER '{provider_name}'. Fallback links will be used.")
        return None

    try:
        return provider_cls()
    except ValueError as e:
        logger.warning(f"{provider_name} meeting provider is not configured ({e}). Fallback links will be used.")
        return None


def generate_fallback_link(lesson: Lesson) -> str:
    """
    Builds a link shaped like a real Meet URL from the lesson subject, date and
    a random token. It is not guaranteed to lead to a working meeting.
    """
    subject_slug = re.sub(r'[^a-z0-9]', '', lesson.subject.lower()) or 'lesson'
    date_part = lesson.lesson_date.strftime('%Y%m%d')
    token = ''.join(secrets.choice(_TOKEN_ALPHABET) for _ in range(6))
    return f"https://meet.google.com/{MEET_LINK_PREFIX}-{subject_slug}-{date_part}-{token}"


def describe(lesson: Lesson, student: Party, tutor: Party) -> str:
    """Calendar-friendly description of the lesson."""
    return (
        f"{BRAND_NAME} Lesson\n\n"
        f"Subject: {lesson.subject}\n"
        f"Student: {student.name}\n"
        f"Tutor: {tutor.name}\n"
        f"Date: {lesson.lesson_date.isoformat()}\n"
        f"Time: {lesson.time_label}\n"
        f"Duration: {lesson.duration_minutes} minutes\n\n"
        f"Join the lesson using the meeting link above."
    )


class MeetingLinkProvisioner:
    """
    Returns a join URL for a lesson. Never raises: any provider problem turns
    into a degraded result carrying a fallback link.

    Provisioning is not idempotent, every call may create a new meeting on
    the provider side.
    """
    def __init__(self, provider=None, tz: str | BaseTzInfo = DEFAULT_TIMEZONE):
        self.provider = provider
        self.tz = tz

    def provision(self, lesson: Lesson, student: Party, tutor: Party) -> ProvisionResult:
        if self.provider is None:
            return self._degraded(lesson, "no meeting provider configured")

        provider_name = getattr(self.provider, 'name', type(self.provider).__name__)
        try:
            start = lesson_start(lesson.lesson_date, lesson.time_label, self.tz)
            end = start + timedelta(minutes=lesson.duration_minutes)
            join_url = self.provider.create_meeting(
                subject=f"{lesson.subject} - {student.name} & {tutor.name}",
                start=start,
                end=end,
                attendee_emails=[student.email, tutor.email],
                description=describe(lesson, student, tutor),
            )
        except Exception as e:
            logger.exception(f"{provider_name} provisioning crashed for lesson {lesson.lesson_id}: {e}")
            return self._degraded(lesson, f"{provider_name} error: {e}")

        if not join_url:
            return self._degraded(lesson, f"{provider_name} returned no join URL")

        return ProvisionResult(link=join_url, provider=provider_name)

    def _degraded(self, lesson: Lesson, reason: str) -> ProvisionResult:
        link = generate_fallback_link(lesson)
        logger.warning(f"Using fallback meeting link for lesson {lesson.lesson_id} ({reason}): {link}")
        return ProvisionResult(link=link, degraded=True, provider="fallback", reason=reason)
