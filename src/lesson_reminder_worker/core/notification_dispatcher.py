'''
Sends reminder emails to the two parties of a lesson
'''
from concurrent.futures import ThreadPoolExecutor

from ..common.logger import logger
from .base_classes import DispatchOutcome, Party, ReminderWindow


class NotificationDispatcher:
    """
    Stateless fan-out over an email transport. A transport is any object with
    `send_email(to, subject, body) -> {'ok': bool, 'id': ...}`.
    """
    def __init__(self, transport):
        self.transport = transport

    def send(self, address: str, subject: str, body: str) -> bool:
        """Returns True when the transport accepted the message. Never raises."""
        try:
            receipt = self.transport.send_email(address, subject, body)
        except Exception as e:
            logger.exception(f"Transport failed while emailing {address}: {e}")
            return False

        ok = bool(receipt and receipt.get('ok'))
        if not ok:
            logger.error(f"Email '{subject}' to {address} was not accepted by the transport.")
        return ok

    def send_pair(self,
            window: ReminderWindow,
            student: Party,
            tutor: Party,
            subject: str,
            body: str) -> DispatchOutcome:
        """
        Sends the same message to student and tutor concurrently and waits for
        both. One recipient failing does not stop the other.
        """
        with ThreadPoolExecutor(max_workers=2, thread_name_prefix='reminder-send') as pool:
            student_future = pool.submit(self.send, student.email, subject, body)
            tutor_future = pool.submit(self.send, tutor.email, subject, body)
            outcome = DispatchOutcome(
                window=window,
                student_ok=student_future.result(),
                tutor_ok=tutor_future.result(),
            )

        if not outcome.ok:
            logger.warning(
                f"{window.value} reminder partially failed "
                f"(student ok: {outcome.student_ok}, tutor ok: {outcome.tutor_ok})"
            )
        return outcome
