'''
Email transports. Resend is used when RESEND_API_KEY is configured, otherwise
messages are only written to the log.
'''
import os
import requests
from dotenv import load_dotenv
from requests.exceptions import HTTPError, RequestException
from ..common.logger import logger
from ..common.config import DEFAULT_SENDER_EMAIL, SEND_TIMEOUT_SECONDS


class ResendEmailSender:
    """
    Sends plain-text emails through the Resend HTTP API.
    """
    name = "resend"
    url = "https://api.resend.com/emails"

    def __init__(self, api_key=None, sender=None, timeout=SEND_TIMEOUT_SECONDS):
        load_dotenv()
        self.api_key = api_key or os.getenv("RESEND_API_KEY")
        self.sender = sender or os.getenv("SENDER_EMAIL", DEFAULT_SENDER_EMAIL)
        self.timeout = timeout

        if not self.api_key:
            raise ValueError("RESEND_API_KEY is not set in the environment.")

    def send_email(self, to: str, subject: str, body: str) -> dict:
        """
        Sends one email.

        Returns:
            {'ok': bool, 'id': str | None}
        """
        headers = {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        payload = {
            "from": self.sender,
            "to": [to],
            "subject": subject,
            "text": body,
        }

        try:
            response = requests.post(self.url, headers=headers, json=payload, timeout=self.timeout)
            response.raise_for_status()
            email_id = response.json().get('id')
        except HTTPError as http_err:
            logger.error(f"Resend rejected email to {to}: {http_err}\nResponse: {http_err.response.text}")
            return {'ok': False, 'id': None}
        except (RequestException, ValueError) as err:
            logger.error(f"Could not reach Resend to email {to}: {err}")
            return {'ok': False, 'id': None}

        logger.info(f"Email '{subject}' sent to {to} (id: {email_id})")
        return {'ok': True, 'id': email_id}


class ConsoleEmailSender:
    """Development transport: logs the email instead of sending it."""
    name = "console"

    def send_email(self, to: str, subject: str, body: str) -> dict:
        logger.info(f"[console email] To: {to} | Subject: {subject}\n{body}")
        return {'ok': True, 'id': None}


def build_email_sender():
    """Returns the Resend sender if configured, otherwise the console one."""
    try:
        return ResendEmailSender()
    except ValueError:
        logger.warning("RESEND_API_KEY not configured. Emails will only be logged.")
        return ConsoleEmailSender()
