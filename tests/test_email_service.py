"""Tests for EmailJS delivery (mocked)."""

from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest
from sparkstock.email_service import EMAILJS_API_URL, EmailSender, send_email
from sparkstock.outcomes import Failed, Ok

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _client(MockClient, text="OK"):
    mock_response = MagicMock()
    mock_response.text = text
    mock_response.raise_for_status = MagicMock()

    instance = AsyncMock()
    instance.post.return_value = mock_response
    instance.__aenter__ = AsyncMock(return_value=instance)
    instance.__aexit__ = AsyncMock(return_value=False)
    MockClient.return_value = instance
    return instance, mock_response


PARAMS = {"to_name": "Avery", "to_email": "avery@example.com", "subject": "Digest"}


# ---------------------------------------------------------------------------
# send_email
# ---------------------------------------------------------------------------


class TestSendEmail:
    @pytest.mark.asyncio
    async def test_posts_template_payload(self):
        with patch("sparkstock.email_service.httpx.AsyncClient") as MockClient:
            instance, _ = _client(MockClient)
            body = await send_email(
                public_key="pk",
                service_id="svc",
                template_id="tpl",
                template_params=PARAMS,
            )

        assert body == "OK"
        args, kwargs = instance.post.call_args
        assert args[0] == EMAILJS_API_URL
        assert kwargs["json"] == {
            "service_id": "svc",
            "template_id": "tpl",
            "user_id": "pk",
            "template_params": PARAMS,
        }

    @pytest.mark.asyncio
    async def test_raises_on_http_error(self):
        with patch("sparkstock.email_service.httpx.AsyncClient") as MockClient:
            _, mock_response = _client(MockClient)
            mock_response.raise_for_status.side_effect = httpx.HTTPStatusError(
                "400 Bad Request", request=MagicMock(), response=MagicMock()
            )
            with pytest.raises(httpx.HTTPStatusError):
                await send_email(
                    public_key="pk", service_id="svc", template_id="tpl",
                    template_params=PARAMS,
                )


# ---------------------------------------------------------------------------
# EmailSender
# ---------------------------------------------------------------------------


class TestEmailSender:
    @pytest.mark.asyncio
    async def test_not_initialized(self):
        sender = EmailSender()
        with patch("sparkstock.email_service.send_email", new_callable=AsyncMock) as mock_send:
            outcome = await sender.send("svc", "tpl", PARAMS)
        assert isinstance(outcome, Failed)
        mock_send.assert_not_called()

    @pytest.mark.asyncio
    async def test_send_ok(self):
        sender = EmailSender(timeout=3.0)
        sender.init(" pk ")
        assert sender.initialized
        with patch("sparkstock.email_service.send_email", new_callable=AsyncMock) as mock_send:
            mock_send.return_value = "OK"
            outcome = await sender.send("svc", "tpl", PARAMS)

        assert outcome == Ok("email", "OK")
        kwargs = mock_send.call_args[1]
        assert kwargs["public_key"] == "pk"
        assert kwargs["timeout"] == 3.0

    @pytest.mark.asyncio
    async def test_send_failure_is_outcome(self):
        sender = EmailSender()
        sender.init("pk")
        with patch("sparkstock.email_service.httpx.AsyncClient") as MockClient:
            instance, _ = _client(MockClient)
            instance.post.side_effect = httpx.ConnectError("unreachable")
            outcome = await sender.send("svc", "tpl", PARAMS)

        assert outcome == Failed("email", "unreachable")
