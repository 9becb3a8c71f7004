"""Admin email notifications for new signups."""

from html import escape

import httpx

from tuneforge.config import NotificationSettings
from tuneforge.core.logging import get_logger

logger = get_logger(__name__)


class SignupNotifier:
    """
    Sends the "approval required" email through the mail API.

    Meant to run as a background task after the signup response is sent;
    ``notify_signup`` never raises.
    """

    def __init__(
        self,
        settings: NotificationSettings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._settings = settings
        self._transport = transport

    def build_message(self, user_email: str, user_name: str) -> dict:
        safe_name = escape(user_name)
        safe_email = escape(user_email)
        return {
            "from": self._settings.from_email,
            "to": self._settings.admin_email,
            "subject": "New User Signup - Approval Required",
            "html": (
                "<h2>New User Signup Request</h2>"
                "<p>A new user has signed up and is waiting for approval:</p>"
                "<ul>"
                f"<li><strong>Name:</strong> {safe_name}</li>"
                f"<li><strong>Email:</strong> {safe_email}</li>"
                "</ul>"
                "<p>Please review and approve this user in the admin panel.</p>"
            ),
            "text": (
                "New User Signup Request\n\n"
                "A new user has signed up and is waiting for approval:\n\n"
                f"Name: {user_name}\n"
                f"Email: {user_email}\n\n"
                "Please review and approve this user in the admin panel.\n"
            ),
        }

    async def notify_signup(self, user_email: str, user_name: str) -> bool:
        """Send the notification; returns whether the mail API accepted it."""
        if not self._settings.enabled:
            logger.info("Signup notification skipped, mail API not configured")
            return False

        try:
            async with httpx.AsyncClient(
                timeout=self._settings.timeout,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    self._settings.api_url,
                    json=self.build_message(user_email, user_name),
                    headers={"Authorization": f"Bearer {self._settings.api_key}"},
                )
                response.raise_for_status()
        except httpx.HTTPStatusError as e:
            logger.error(
                "Signup notification rejected",
                status=e.response.status_code,
            )
            return False
        except httpx.HTTPError as e:
            logger.error(
                "Signup notification failed",
                error_type=type(e).__name__,
            )
            return False

        logger.info("Signup notification sent")
        return True
