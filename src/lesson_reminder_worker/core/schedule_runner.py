'''
Entry boundary for whoever triggers scans (worker loop, CLI, manual trigger).
It does not decide cadence, it only makes sure scans never overlap.
'''
import threading
from datetime import datetime

from ..common.logger import logger
from ..common.errors import SourceUnavailableError
from .base_classes import ScanResult, UpcomingLesson
from .reminder_scheduler import ReminderScheduler


class ScheduleRunner:
    """
    Runs at most one scan at a time. A trigger arriving while a scan is in
    flight is rejected rather than queued.
    """
    def __init__(self, scheduler: ReminderScheduler):
        self.scheduler = scheduler
        self._scan_lock = threading.Lock()

    def run_once(self, now: datetime | None = None) -> ScanResult:
        if not self._scan_lock.acquire(blocking=False):
            logger.warning("A scan is already in progress. Rejecting this trigger.")
            return ScanResult(success=False, started_at=now, error="scan already in progress")

        try:
            return self.scheduler.scan(now)
        except SourceUnavailableError as e:
            logger.error(f"Scan aborted: {e}")
            return ScanResult(success=False, started_at=now, error=str(e))
        finally:
            self._scan_lock.release()

    def peek(self, now: datetime | None = None) -> list[UpcomingLesson]:
        return self.scheduler.upcoming(now)
