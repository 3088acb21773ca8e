'''
Configuration constants for the application
'''
import os
from dotenv import load_dotenv

load_dotenv()

# Channel for manual scan requests from other services (pg_notify)
MANUAL_TRIGGER_CHANNEL = "manual-lesson-reminder-trigger"

# Only lessons in one of these statuses are scheduling candidates
CANDIDATE_STATUSES = ("confirmed",)

# How far ahead of "now" a scan looks for lessons to classify
LOOKAHEAD_HOURS = 2

# The timezone the lesson date/time labels are written in. (IANA format)
DEFAULT_TIMEZONE = os.getenv("LESSON_TIMEZONE", "Africa/Cairo")

# The worker loop scans at least this often. Must stay <= 60 for the
# one-minute window to fire reliably.
SCAN_INTERVAL_SECONDS = 30

# Per-request deadline for the email and conferencing HTTP calls
SEND_TIMEOUT_SECONDS = 10

# Branding used in the messages and the fallback meeting links
BRAND_NAME = "TutorConnect"
MEET_LINK_PREFIX = "tutorconnect"

# Default sender when SENDER_EMAIL is not set
DEFAULT_SENDER_EMAIL = "onboarding@resend.dev"
