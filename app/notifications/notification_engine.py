"""Notification engine for gamification events."""

from html import escape
from typing import List, Optional

import httpx
import structlog

from app.core.config import Settings, settings as default_settings
from app.core.errors import NotificationError
from app.schemas.gamification import AwardedBadge

logger = structlog.get_logger()


class NotificationEngine:
    """Sends transactional email through the email provider's HTTP API."""

    def __init__(self, http_client: httpx.AsyncClient, settings: Optional[Settings] = None):
        self.http = http_client
        self.settings = settings or default_settings

    @property
    def enabled(self) -> bool:
        return self.settings.email_configured

    async def send_email(self, to: str, subject: str, html: str) -> None:
        """Send one email. Raises ``NotificationError`` on any failure."""
        payload = {
            "from": {"email": self.settings.EMAIL_FROM, "name": self.settings.EMAIL_FROM_NAME},
            "to": [{"email": to}],
            "subject": subject,
            "html": html,
        }

        try:
            response = await self.http.post(
                self.settings.EMAIL_API_URL,
                json=payload,
                headers={"Authorization": f"Bearer {self.settings.EMAIL_API_KEY}"}
            )
        except httpx.HTTPError as e:
            raise NotificationError(f"Email request failed: {e}") from e

        if response.is_error:
            raise NotificationError(f"Email API returned {response.status_code}: {response.reason_phrase}")

    async def send_badge_notification(
        self,
        email: str,
        full_name: Optional[str],
        badges: List[AwardedBadge]
    ) -> bool:
        """Tell a student about newly awarded badges. Returns False if nothing was sent."""
        if not self.enabled or not badges:
            return False

        subject, html = self._generate_badge_email(full_name, badges)

        try:
            await self.send_email(email, subject, html)
        except NotificationError as e:
            logger.error("Failed to send badge notification", email=email, error=str(e))
            return False

        logger.info("Badge notification sent", email=email, badges=[b.name for b in badges])
        return True

    def _generate_badge_email(self, full_name: Optional[str], badges: List[AwardedBadge]):
        if len(badges) == 1:
            subject = f"You earned the {badges[0].name} badge!"
        else:
            subject = f"You earned {len(badges)} new badges!"

        greeting = f"Hi {escape(full_name)}," if full_name else "Hi,"
        items = "".join(
            f"<li><strong>{escape(b.name)}</strong>: {escape(b.description)} (+{b.xp_reward} XP)</li>"
            for b in badges
        )
        html = (
            f"<p>{greeting}</p>"
            f"<p>Congratulations on your progress:</p>"
            f"<ul>{items}</ul>"
            f"<p>Keep up the great work!</p>"
        )
        return subject, html
