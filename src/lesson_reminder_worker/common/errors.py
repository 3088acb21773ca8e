'''
Exceptions raised across the reminder worker.

Only SourceUnavailableError is meant to escape a scan. The others are raised
for a single lesson and handled by the scheduler, which skips that lesson.
'''

class ReminderError(Exception):
    """Base class for all reminder worker errors."""


class TimeParseError(ReminderError, ValueError):
    """A lesson time label could not be turned into a 24-hour HH:MM time."""

    def __init__(self, label, reason: str):
        self.label = label
        self.reason = reason
        super().__init__(f"Cannot parse time label {label!r}: {reason}")


class PartyLookupError(ReminderError, LookupError):
    """The student or tutor referenced by a lesson could not be loaded."""

    def __init__(self, lesson_id: str, user_id: str, role: str):
        self.lesson_id = lesson_id
        self.user_id = user_id
        self.role = role
        super().__init__(f"Lesson {lesson_id}: {role} '{user_id}' not found")


class LessonNotFoundError(ReminderError, LookupError):
    """A lesson requested by id does not exist."""

    def __init__(self, lesson_id: str):
        self.lesson_id = lesson_id
        super().__init__(f"Lesson '{lesson_id}' not found")


class SourceUnavailableError(ReminderError):
    """The candidate lesson query failed. The whole scan is aborted."""
