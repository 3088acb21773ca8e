'''
Subject lines and bodies of the reminder emails
'''
from ..common.config import BRAND_NAME
from .base_classes import Lesson, Party


def _details(lesson: Lesson, tutor: Party) -> str:
    return (
        "Lesson Details:\n"
        f"- Subject: {lesson.subject}\n"
        f"- Date: {lesson.lesson_date.isoformat()}\n"
        f"- Time: {lesson.time_label}\n"
        f"- Duration: {lesson.duration_minutes} minutes\n"
        f"- Tutor: {tutor.name}\n"
    )


def one_hour_reminder(lesson: Lesson, student: Party, tutor: Party) -> tuple[str, str]:
    subject = f"Reminder: Your lesson with {tutor.name} starts in 1 hour"
    body = (
        f"Dear {student.name} and {tutor.name},\n\n"
        f"This is a friendly reminder that your {lesson.subject} lesson starts in 1 hour.\n\n"
        f"{_details(lesson, tutor)}\n"
        "Please make sure you're ready for your lesson. "
        "The meeting link will be sent 1 minute before the lesson starts.\n\n"
        f"Best regards,\n{BRAND_NAME} Team\n"
    )
    return subject, body


def join_link_reminder(lesson: Lesson, student: Party, tutor: Party, join_url: str) -> tuple[str, str]:
    subject = "Your lesson starts now - Join the meeting"
    body = (
        f"Dear {student.name} and {tutor.name},\n\n"
        f"Your {lesson.subject} lesson starts now!\n\n"
        f"Join your lesson here: {join_url}\n\n"
        f"{_details(lesson, tutor)}\n"
        "Click the link above to join the session.\n\n"
        f"Best regards,\n{BRAND_NAME} Team\n"
    )
    return subject, body
