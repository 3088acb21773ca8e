'''
Creates Google Calendar events with an attached Google Meet conference
'''
import os
import uuid
from datetime import datetime
from dotenv import load_dotenv
from google.oauth2 import service_account
from googleapiclient.discovery import build, Resource
from googleapiclient.errors import HttpError
from ..common.logger import logger

SCOPES = [
    'https://www.googleapis.com/auth/calendar',
    'https://www.googleapis.com/auth/calendar.events',
]

class GoogleCalendarManager:
    """
    Manages the Google Calendar API calls that provision Meet links, using a
    service account.
    """
    name = "google_meet"

    def __init__(self):
        load_dotenv()
        self.calendar_id = os.getenv("GOOGLE_CALENDAR_ID", "primary")
        self.service = self._authenticate()

    def _authenticate(self) -> Resource | None:
        """Authenticates using the service account JSON file."""
        creds_path = os.getenv("GOOGLE_CREDENTIALS_PATH")
        if not creds_path:
            raise ValueError("GOOGLE_CREDENTIALS_PATH is not set in the environment.")

        try:
            creds = service_account.Credentials.from_service_account_file(
                creds_path, scopes=SCOPES)
            logger.info("Successfully authenticated with Google Calendar API.")
            return build('calendar', 'v3', credentials=creds, cache_discovery=False)

        except Exception as e:
            logger.error(f"Error occurred in authentication:\n{e}")
            return None

    def _build_event_body(self,
            summary: str,
            description: str,
            start: datetime,
            end: datetime,
            attendee_emails: list[str]) -> dict:
        """Helper to construct the event dictionary for the API."""
        return {
            'summary': summary,
            'description': description,
            'start': {'dateTime': start.isoformat(), 'timeZone': str(start.tzinfo or 'UTC')},
            'end': {'dateTime': end.isoformat(), 'timeZone': str(end.tzinfo or 'UTC')},
            'attendees': [{'email': email} for email in attendee_emails],
            'conferenceData': {
                'createRequest': {
                    # Google dedupes create requests on this id
                    'requestId': f"lesson-{uuid.uuid4().hex}",
                    'conferenceSolutionKey': {'type': 'hangoutsMeet'},
                }
            },
        }

    @staticmethod
    def _extract_join_url(created_event: dict) -> str | None:
        entry_points = created_event.get('conferenceData', {}).get('entryPoints', [])
        for entry in entry_points:
            if entry.get('entryPointType') == 'video' and entry.get('uri'):
                return entry['uri']
        if entry_points and entry_points[0].get('uri'):
            return entry_points[0]['uri']
        return created_event.get('hangoutLink')

    def create_meeting(self,
            subject: str,
            start: datetime,
            end: datetime,
            attendee_emails: list[str],
            description: str = "") -> str | None:
        """
        Creates a calendar event with a Meet conference and invites the attendees.

        Returns:
            The Meet join URL, or None if the event or its conference could not
            be created.
        """
        if not self.service:
            return None

        event_body = self._build_event_body(subject, description, start, end, attendee_emails)

        logger.debug(f"Attempting to create event with body: {event_body}")
        try:
            created_event = self.service.events().insert(
                calendarId=self.calendar_id,
                body=event_body,
                conferenceDataVersion=1,
                sendUpdates='all',
            ).execute()
        except HttpError as http_err:
            logger.error(f"An HTTP error occurred while creating event '{subject}'.")
            logger.error(f"Status Code: {http_err.resp.status}")
            # The content is bytes, so we decode it for a readable log message
            logger.error(f"Response Body: {http_err.content.decode()}")
            return None

        join_url = self._extract_join_url(created_event)
        if not join_url:
            logger.error(f"Event '{subject}' was created without conference data: {created_event.get('htmlLink')}")
            return None

        logger.info(f"Created Google Meet for '{subject}': {join_url}")
        return join_url
