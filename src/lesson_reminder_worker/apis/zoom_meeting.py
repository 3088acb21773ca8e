'''
Creates one-off Zoom meetings for lessons, as an alternative to Google Meet
'''
import os
import requests
from datetime import datetime
from dotenv import load_dotenv
from requests.exceptions import HTTPError, RequestException
from ..common.logger import logger
from ..common.config import SEND_TIMEOUT_SECONDS

class ZoomMeetingManager:
    """
    Manages creating Zoom meetings using Server-to-Server OAuth.
    """
    name = "zoom"
    base_url = "https://api.zoom.us/v2"
    token_url = "https://zoom.us/oauth/token"

    def __init__(self, account_id=None, client_id=None, client_secret=None):
        load_dotenv()
        self.account_id = account_id or os.environ.get("ZOOM_ACCOUNT_ID")
        self.client_id = client_id or os.environ.get("ZOOM_CLIENT_ID")
        self.client_secret = client_secret or os.environ.get("ZOOM_CLIENT_SECRET")

        if not all([self.account_id, self.client_id, self.client_secret]):
            raise ValueError("Zoom credentials (ACCOUNT_ID, CLIENT_ID, CLIENT_SECRET) are not fully configured.")

    def _get_access_token(self) -> str | None:
        """Gets an access token from the Zoom OAuth endpoint."""
        params = {
            "grant_type": "account_credentials",
            "account_id": self.account_id,
        }

        try:
            response = requests.post(
                self.token_url,
                auth=(self.client_id, self.client_secret),
                params=params,
                timeout=SEND_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            return response.json()["access_token"]

        except HTTPError as http_err:
            logger.critical(f"HTTP error getting Zoom token: {http_err}\nResponse: {http_err.response.text}")
        except (RequestException, KeyError, ValueError) as err:
            logger.critical(f"An unexpected error occurred while getting Zoom token: {err}")
        return None

    def create_meeting(self,
            subject: str,
            start: datetime,
            end: datetime,
            attendee_emails: list[str],
            description: str = "") -> str | None:
        """
        Creates a scheduled (type 2) Zoom meeting.

        Returns:
            The join URL, or None on failure.
        """
        token = self._get_access_token()
        if not token:
            logger.error("Failed to create meeting: could not get access token.")
            return None

        headers = {
            "Authorization": f"Bearer {token}",
            "Content-Type": "application/json",
        }
        payload = {
            "topic": subject,
            "type": 2,
            "start_time": start.isoformat(),
            "duration": int((end - start).total_seconds() // 60),
            "timezone": str(start.tzinfo or "UTC"),
            "agenda": description,
            "settings": {
                "join_before_host": True,
                "mute_upon_entry": True,
                "meeting_invitees": [{"email": email} for email in attendee_emails],
            },
        }

        try:
            response = requests.post(
                f"{self.base_url}/users/me/meetings",
                headers=headers,
                json=payload,
                timeout=SEND_TIMEOUT_SECONDS,
            )
            response.raise_for_status()
            meeting_data = response.json()
        except HTTPError as http_err:
            logger.error(f"HTTP error creating meeting: {http_err}\nResponse: {http_err.response.text}")
            return None
        except (RequestException, ValueError) as err:
            logger.error(f"Could not reach Zoom to create meeting '{subject}': {err}")
            return None

        logger.info(f"Zoom meeting created successfully: {meeting_data.get('topic')}")
        return meeting_data.get('join_url')
