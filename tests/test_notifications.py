"""Tests for badge email notifications."""

import json
from uuid import uuid4

import httpx
import pytest

from app.core.config import Settings
from app.core.errors import NotificationError
from app.notifications.notification_engine import NotificationEngine
from app.schemas.gamification import AwardedBadge


@pytest.fixture
def email_settings():
    return Settings(EMAIL_API_KEY="ms-key", EMAIL_ENABLED=True)


def badge(name, xp_reward=25):
    return AwardedBadge(badge_id=uuid4(), name=name, description=f"{name} description", xp_reward=xp_reward)


def engine_with(handler, settings):
    return NotificationEngine(httpx.AsyncClient(transport=httpx.MockTransport(handler)), settings)


class TestSendEmail:

    @pytest.mark.asyncio
    async def test_posts_payload(self, email_settings):
        captured = {}

        def handler(request):
            captured["payload"] = json.loads(request.content)
            return httpx.Response(202)

        await engine_with(handler, email_settings).send_email("kid@example.com", "Hi", "<p>Hi</p>")

        payload = captured["payload"]
        assert payload["to"] == [{"email": "kid@example.com"}]
        assert payload["from"] == {"email": "noreply@lms-platform.com", "name": "LMS Platform"}
        assert payload["subject"] == "Hi"

    @pytest.mark.asyncio
    async def test_error_status_raises(self, email_settings):
        engine = engine_with(lambda request: httpx.Response(422), email_settings)
        with pytest.raises(NotificationError):
            await engine.send_email("kid@example.com", "Hi", "<p>Hi</p>")


class TestBadgeNotification:

    @pytest.mark.asyncio
    async def test_multiple_badges_summarized(self, email_settings):
        captured = {}

        def handler(request):
            captured["payload"] = json.loads(request.content)
            return httpx.Response(202)

        sent = await engine_with(handler, email_settings).send_badge_notification(
            "kid@example.com", "Sam <script>", [badge("First Steps"), badge("Course Champion", 75)]
        )

        assert sent is True
        payload = captured["payload"]
        assert payload["subject"] == "You earned 2 new badges!"
        assert "Course Champion" in payload["html"]
        assert "+75 XP" in payload["html"]
        assert "<script>" not in payload["html"]

    @pytest.mark.asyncio
    async def test_failure_is_logged_not_raised(self, email_settings):
        engine = engine_with(lambda request: httpx.Response(500), email_settings)
        assert await engine.send_badge_notification("kid@example.com", None, [badge("First Steps")]) is False

    @pytest.mark.asyncio
    async def test_disabled_without_api_key(self):
        calls = []
        engine = engine_with(lambda request: calls.append(request) or httpx.Response(202), Settings(EMAIL_API_KEY=None))

        assert engine.enabled is False
        assert await engine.send_badge_notification("kid@example.com", None, [badge("First Steps")]) is False
        assert calls == []
