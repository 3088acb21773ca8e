'''
This file contains all the base models that will be used in the different files
'''
from datetime import date, datetime, timedelta
from enum import Enum
from pydantic import BaseModel, ConfigDict, Field


class LessonStatus(str, Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class ReminderWindow(str, Enum):
    """
    A named interval before the lesson start during which one kind of
    reminder fires. Open on the past edge, closed on the future edge.
    """
    ONE_HOUR = "one_hour"
    ONE_MINUTE = "one_minute"

    @property
    def upper_bound(self) -> timedelta:
        return WINDOW_UPPER_BOUNDS[self]

    def is_due(self, remaining: timedelta) -> bool:
        """True when `remaining` (start - now) falls inside (0, upper_bound]."""
        return timedelta(0) < remaining <= self.upper_bound


WINDOW_UPPER_BOUNDS = {
    ReminderWindow.ONE_HOUR: timedelta(minutes=60),
    ReminderWindow.ONE_MINUTE: timedelta(minutes=1),
}


class Party(BaseModel):
    """A student or tutor taking part in a lesson."""
    user_id: str = Field(..., alias='id')
    name: str
    email: str

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class Lesson(BaseModel):
    """A Pydantic model representing a booked lesson from the lessons table."""
    lesson_id: str = Field(..., alias='id')
    status: LessonStatus
    subject: str
    lesson_date: date = Field(..., alias='date')
    time_label: str = Field(..., alias='time')
    duration_minutes: int = Field(..., alias='duration', gt=0)
    student_id: str
    tutor_id: str

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    @property
    def is_candidate(self) -> bool:
        return self.status == LessonStatus.CONFIRMED


class ProvisionResult(BaseModel):
    """
    Outcome of asking for a meeting link. A degraded result carries a
    synthetic link that looks like a real one but may not work.
    """
    link: str
    degraded: bool = False
    provider: str = "fallback"
    reason: str | None = None

    model_config = ConfigDict(frozen=True)


class DispatchOutcome(BaseModel):
    """Per-recipient result of sending one reminder to both parties."""
    window: ReminderWindow
    student_ok: bool
    tutor_ok: bool

    model_config = ConfigDict(frozen=True)

    @property
    def ok(self) -> bool:
        return self.student_ok and self.tutor_ok

    @property
    def failures(self) -> int:
        return int(not self.student_ok) + int(not self.tutor_ok)


class ScanResult(BaseModel):
    """Summary returned to whoever triggered a scan."""
    success: bool = True
    considered: int = 0
    fired: int = 0
    sends_failed: int = 0
    skipped: int = 0
    degraded_links: int = 0
    started_at: datetime | None = None
    error: str | None = None


class UpcomingLesson(BaseModel):
    """Read-only view of a candidate lesson, used for monitoring."""
    lesson_id: str
    subject: str
    starts_at: datetime
    minutes_remaining: int
    status: str
    time_until: str
    next_action: str
    pending_windows: list[ReminderWindow] = Field(default_factory=list)
