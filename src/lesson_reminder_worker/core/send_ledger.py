'''
Records which (lesson, window) reminders have been sent.

A reminder is only dispatched by whoever wins claim() for its
(lesson_id, window) pair. InMemorySendLedger lives as long as the object does;
the scheduler creates a fresh one per scan unless a ledger is injected, which
means send-state is forgotten between scans. DatabaseSendLedger keeps it in
PostgreSQL and survives restarts.
'''
import threading

from .base_classes import ReminderWindow


class InMemorySendLedger:
    def __init__(self):
        self._lock = threading.Lock()
        self._claimed: set[tuple[str, ReminderWindow]] = set()

    def claim(self, lesson_id: str, window: ReminderWindow) -> bool:
        key = (lesson_id, window)
        with self._lock:
            if key in self._claimed:
                return False
            self._claimed.add(key)
            return True

    def release(self, lesson_id: str, window: ReminderWindow) -> None:
        with self._lock:
            self._claimed.discard((lesson_id, window))

    def has_fired(self, lesson_id: str, window: ReminderWindow) -> bool:
        with self._lock:
            return (lesson_id, window) in self._claimed


class DatabaseSendLedger:
    """Ledger backed by the reminder_sends table (see DatabaseHandler)."""
    def __init__(self, db_handler):
        self.db_handler = db_handler

    def claim(self, lesson_id: str, window: ReminderWindow) -> bool:
        return self.db_handler.claim_reminder(lesson_id, window.value)

    def release(self, lesson_id: str, window: ReminderWindow) -> None:
        self.db_handler.release_reminder(lesson_id, window.value)

    def has_fired(self, lesson_id: str, window: ReminderWindow) -> bool:
        return self.db_handler.reminder_was_sent(lesson_id, window.value)
