'''
The main database handler of this project

Reads lessons and users, and owns the reminder_sends table that records which
reminders already went out.
'''
import os
import psycopg2
import psycopg2.extensions
import psycopg2.pool
import select
import atexit
from contextlib import contextmanager
from dotenv import load_dotenv
from pydantic import ValidationError
from typing import Optional, List, Generator

from ..common.logger import logger
from ..common.config import MANUAL_TRIGGER_CHANNEL, CANDIDATE_STATUSES
from ..common.errors import SourceUnavailableError
from ..core.base_classes import Lesson, Party

LESSON_COLUMNS = ('id', 'status', 'subject', 'date', 'time', 'duration', 'student_id', 'tutor_id')

class DatabaseHandler:
    """
    Manages a singleton instance of a PostgreSQL connection pool.
    The handler is self-configuring by loading the DATABASE_URL from the
    .env file upon first initialization.
    """
    _instance = None

    def __new__(cls, *args, **kwargs):
        if not cls._instance:
            cls._instance = super(DatabaseHandler, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        """
        Initializes the connection pool by loading configuration from
        environment variables. This logic only runs once.
        """
        if getattr(self, 'pool', None):
            return

        load_dotenv()
        db_url = os.getenv("DATABASE_URL")
        if not db_url:
            err_msg = "CRITICAL: DATABASE_URL environment variable is not set."
            logger.critical(err_msg)
            raise ValueError(err_msg)

        try:
            logger.info("Initializing database connection pool...")
            self.pool = psycopg2.pool.SimpleConnectionPool(
                minconn=1,
                maxconn=5,
                dsn=db_url
            )
            # Only register the cleanup function if NOT running tests
            if "PYTEST_CURRENT_TEST" not in os.environ:
                atexit.register(self.close_pool)
        except psycopg2.OperationalError as e:
            logger.critical(f"FATAL: Could not connect to the database: {e}")
            raise

    def close_pool(self):
        """Closes all connections in the pool."""
        if self.pool:
            logger.info("Closing database connection pool.")
            self.pool.closeall()
            self.pool = None

    @contextmanager
    def get_connection(self) -> Generator[psycopg2.extensions.connection, None, None]:
        """Context manager to get a connection from the pool and release it."""
        conn = None
        try:
            conn = self.pool.getconn()
            yield conn
        except psycopg2.Error as e:
            logger.error(f"Database connection error: {e}")
            raise
        finally:
            if conn:
                self.pool.putconn(conn)

    def listen_for_trigger(self, timeout: float) -> Optional[str]:
        """
        Waits up to `timeout` seconds for a manual scan request on the trigger
        channel. Returns its payload, or None if nothing arrived.
        """
        conn = None
        try:
            conn = self.pool.getconn()
            conn.set_isolation_level(psycopg2.extensions.ISOLATION_LEVEL_AUTOCOMMIT)

            with conn.cursor() as cursor:
                cursor.execute(f"LISTEN \"{MANUAL_TRIGGER_CHANNEL}\";")

            # Queries on this pooled connection may already have read a NOTIFY
            conn.poll()
            if not conn.notifies:
                if select.select([conn], [], [], timeout) == ([], [], []):
                    return None
                conn.poll()
            if not conn.notifies:
                return None

            notifications = list(conn.notifies)
            conn.notifies.clear()
            logger.info(f"Manual trigger received on channel '{notifications[0].channel}' "
                        f"({len(notifications)} queued)")
            return notifications[0].payload
        finally:
            if conn:
                self.pool.putconn(conn)

    @staticmethod
    def _row_to_lesson(row) -> Optional[Lesson]:
        data = dict(zip(LESSON_COLUMNS, row))
        data['id'] = str(data['id'])
        data['student_id'] = str(data['student_id'])
        data['tutor_id'] = str(data['tutor_id'])
        try:
            return Lesson(**data)
        except ValidationError as e:
            logger.error(f"Ignoring malformed lesson row {data['id']}: {e}")
            return None

    def list_confirmed_lessons(self) -> List[Lesson]:
        """
        Fetches every lesson whose status makes it a reminder candidate.

        Raises:
            SourceUnavailableError: if the query fails.
        """
        sql = """
            SELECT id, status, subject, "date", "time", duration, student_id, tutor_id
            FROM lessons
            WHERE status IN %s;
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (CANDIDATE_STATUSES,))
                    rows = cur.fetchall()
        except psycopg2.Error as e:
            raise SourceUnavailableError(f"Could not fetch confirmed lessons: {e}") from e

        lessons = [lesson for lesson in map(self._row_to_lesson, rows) if lesson]
        logger.info(f"Fetched {len(lessons)} confirmed lessons.")
        return lessons

    def get_lesson(self, lesson_id: str) -> Optional[Lesson]:
        """Fetches one lesson by id, whatever its status."""
        sql = """
            SELECT id, status, subject, "date", "time", duration, student_id, tutor_id
            FROM lessons
            WHERE id = %s;
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (lesson_id,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            raise SourceUnavailableError(f"Could not fetch lesson {lesson_id}: {e}") from e

        if not row:
            logger.warning(f"No lesson found with id: {lesson_id}")
            return None
        return self._row_to_lesson(row)

    def get_user(self, user_id: str) -> Optional[Party]:
        """Fetches the name and email of a student or tutor."""
        sql = "SELECT id, name, email FROM users WHERE id = %s;"
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (user_id,))
                    row = cur.fetchone()
        except psycopg2.Error as e:
            logger.error(f"Database error fetching user {user_id}: {e}")
            return None

        if not row or not row[2]:
            logger.warning(f"No user with an email found for id: {user_id}")
            return None
        return Party(id=str(row[0]), name=row[1] or "", email=row[2])

    def ensure_reminder_table(self) -> None:
        """Creates the reminder_sends table if it does not exist yet."""
        sql = """
            CREATE TABLE IF NOT EXISTS reminder_sends (
                lesson_id TEXT NOT NULL,
                window_name TEXT NOT NULL,
                sent_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
                PRIMARY KEY (lesson_id, window_name)
            );
        """
        with self.get_connection() as conn:
            with conn.cursor() as cur:
                cur.execute(sql)
            conn.commit()
        logger.info("reminder_sends table is ready.")

    def claim_reminder(self, lesson_id: str, window_name: str) -> bool:
        """
        Inserts the (lesson, window) row if it is absent.
        Returns True only for the caller whose insert went through.
        """
        sql = """
            INSERT INTO reminder_sends (lesson_id, window_name)
            VALUES (%s, %s)
            ON CONFLICT (lesson_id, window_name) DO NOTHING
            RETURNING lesson_id;
        """
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (lesson_id, window_name))
                    claimed = cur.fetchone() is not None
                conn.commit()
            return claimed
        except psycopg2.Error as e:
            # Not sending beats sending twice
            logger.error(f"Failed to claim {window_name} reminder for lesson {lesson_id}: {e}")
            return False

    def release_reminder(self, lesson_id: str, window_name: str) -> bool:
        """Deletes a claim so a later scan can retry the reminder."""
        sql = "DELETE FROM reminder_sends WHERE lesson_id = %s AND window_name = %s;"
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (lesson_id, window_name))
                conn.commit()
            return True
        except psycopg2.Error as e:
            logger.error(f"Failed to release {window_name} reminder for lesson {lesson_id}: {e}")
            return False

    def reminder_was_sent(self, lesson_id: str, window_name: str) -> bool:
        sql = "SELECT 1 FROM reminder_sends WHERE lesson_id = %s AND window_name = %s;"
        try:
            with self.get_connection() as conn:
                with conn.cursor() as cur:
                    cur.execute(sql, (lesson_id, window_name))
                    return cur.fetchone() is not None
        except psycopg2.Error as e:
            logger.error(f"Database error checking {window_name} reminder for lesson {lesson_id}: {e}")
            return False
