"""Tests for email message building and best-effort delivery."""

import json

import httpx
import pytest

from approval_orbit.core.config import Settings
from approval_orbit.services.notifications import (
    ApprovalNotifier,
    EmailMessage,
    build_changes_requested,
    build_final_approved,
    build_stage_review_requested,
)


def make_message(**overrides) -> EmailMessage:
    values = {"to": ["rae@example.com"], "subject": "Review needed", "html": "<p>hi</p>", "tags": ["t"]}
    values.update(overrides)
    return EmailMessage(**values)


class TestBuilders:
    def test_stage_review_requested(self):
        msg = build_stage_review_requested(
            ["rae@example.com"], "abc", "Holiday Card", "Spring Campaign", "Brand Check"
        )
        assert msg.subject == "Review needed: Holiday Card (Brand Check)"
        assert "/mockups/abc" in msg.html
        assert msg.tags == ["stage_review_requested"]

    def test_user_text_is_escaped(self):
        msg = build_changes_requested(
            ["olive@example.com"], "abc", "<b>Card</b>", "Design Review", "Rae", "Use <red>"
        )
        assert "&lt;b&gt;Card&lt;/b&gt;" in msg.html
        assert "Use &lt;red&gt;" in msg.html

    def test_final_approved_notes_optional(self):
        without = build_final_approved(["a@example.com"], "abc", "Card", "Spring", "Olive")
        with_notes = build_final_approved(["a@example.com"], "abc", "Card", "Spring", "Olive", "Ship it")
        assert "blockquote" not in without.html
        assert "Ship it" in with_notes.html


class TestApprovalNotifier:
    async def test_disabled_without_api_key(self):
        calls = []
        transport = httpx.MockTransport(lambda request: calls.append(request) or httpx.Response(202))
        notifier = ApprovalNotifier(Settings(SENDGRID_API_KEY=None), transport=transport)

        assert await notifier.send(make_message()) is False
        assert calls == []

    async def test_no_recipients(self):
        notifier = ApprovalNotifier(Settings(SENDGRID_API_KEY="key"))
        assert await notifier.send(make_message(to=[])) is False

    async def test_posts_payload(self):
        captured = []

        def handler(request: httpx.Request) -> httpx.Response:
            captured.append(request)
            return httpx.Response(202)

        settings = Settings(SENDGRID_API_KEY="key", SENDGRID_API_URL="https://mail.test/send")
        notifier = ApprovalNotifier(settings, transport=httpx.MockTransport(handler))

        assert await notifier.send(make_message()) is True

        [request] = captured
        assert str(request.url) == "https://mail.test/send"
        assert request.headers["Authorization"] == "Bearer key"
        payload = json.loads(request.content)
        assert payload["personalizations"] == [{"to": [{"email": "rae@example.com"}]}]
        assert payload["subject"] == "Review needed"
        assert payload["categories"] == ["t"]

    async def test_error_status_is_reported(self):
        notifier = ApprovalNotifier(
            Settings(SENDGRID_API_KEY="key"),
            transport=httpx.MockTransport(lambda request: httpx.Response(500, text="boom")),
        )
        assert await notifier.send(make_message()) is False

    async def test_transport_failure_is_swallowed(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        notifier = ApprovalNotifier(Settings(SENDGRID_API_KEY="key"), transport=httpx.MockTransport(handler))
        assert await notifier.send(make_message()) is False

    @pytest.mark.parametrize("count", [0, 3])
    async def test_send_all(self, count):
        sent = []
        notifier = ApprovalNotifier(
            Settings(SENDGRID_API_KEY="key"),
            transport=httpx.MockTransport(lambda request: sent.append(request) or httpx.Response(202)),
        )
        await notifier.send_all([make_message() for _ in range(count)])
        assert len(sent) == count
