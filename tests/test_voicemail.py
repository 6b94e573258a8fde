import smtplib
from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest
from callforward.config import SmtpConfig
from callforward.voicemail import VoicemailNotifier, build_voicemail_email


@pytest.fixture
def smtp_config():
    return SmtpConfig(
        host="smtp.example.com",
        port=587,
        username="user",
        password="pass",
        from_email="forwarding@example.com",
        to_email="owner@example.com",
    )


def _body(msg, subtype):
    return msg.get_body(preferencelist=(subtype,)).get_content()


class TestBuildVoicemailEmail:
    def test_headers(self):
        msg = build_voicemail_email(
            "https://api.twilio.com/rec/RE1", "Call me back", "+15125551234",
            sender="forwarding@example.com", recipient="owner@example.com",
        )
        assert msg["Subject"] == "New Voicemail from +15125551234"
        assert msg["From"] == "forwarding@example.com"
        assert msg["To"] == "owner@example.com"

    def test_plain_and_html_bodies(self):
        msg = build_voicemail_email(
            "https://api.twilio.com/rec/RE1", "Call me back", "+15125551234",
            sender="a@example.com", recipient="b@example.com",
        )
        text = _body(msg, "plain")
        assert "Transcription: Call me back" in text
        assert "Recording: https://api.twilio.com/rec/RE1" in text
        html_body = _body(msg, "html")
        assert '<a href="https://api.twilio.com/rec/RE1">Listen to recording</a>' in html_body

    def test_defaults_for_missing_fields(self):
        msg = build_voicemail_email("https://x/rec", "", "", sender="a@example.com", recipient="b@example.com")
        assert msg["Subject"] == "New Voicemail from Unknown number"
        assert "No transcription available." in _body(msg, "plain")

    def test_html_is_escaped(self):
        msg = build_voicemail_email("https://x/rec", "<script>", "+1512", sender="a@example.com", recipient="b@example.com")
        assert "&lt;script&gt;" in _body(msg, "html")


class TestVoicemailNotifier:
    @pytest.mark.asyncio
    async def test_sends_with_starttls_and_login(self, smtp_config):
        with patch("smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            mock_smtp.return_value.__enter__ = MagicMock(return_value=server)
            mock_smtp.return_value.__exit__ = MagicMock(return_value=False)
            server.has_extn.return_value = True

            sent = await VoicemailNotifier(smtp_config).send("https://x/rec", "hello", "+15125551234")

        assert sent is True
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("user", "pass")
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_secure_uses_smtp_ssl(self, smtp_config):
        config = replace(smtp_config, secure=True, port=465)
        with patch("smtplib.SMTP_SSL") as mock_ssl:
            server = MagicMock()
            mock_ssl.return_value.__enter__ = MagicMock(return_value=server)
            mock_ssl.return_value.__exit__ = MagicMock(return_value=False)

            sent = await VoicemailNotifier(config).send("https://x/rec", "hello", "+15125551234")

        assert sent is True
        server.starttls.assert_not_called()
        server.send_message.assert_called_once()

    @pytest.mark.asyncio
    async def test_smtp_error_returns_false(self, smtp_config, caplog):
        with patch("smtplib.SMTP") as mock_smtp:
            server = MagicMock()
            server.send_message.side_effect = smtplib.SMTPException("Connection failed")
            mock_smtp.return_value.__enter__ = MagicMock(return_value=server)
            mock_smtp.return_value.__exit__ = MagicMock(return_value=False)

            sent = await VoicemailNotifier(smtp_config).send("https://x/rec", "hello", "+15125551234")

        assert sent is False
        assert "Connection failed" in caplog.text

    @pytest.mark.asyncio
    async def test_unconfigured_smtp_returns_false(self):
        with patch("smtplib.SMTP") as mock_smtp:
            sent = await VoicemailNotifier(SmtpConfig()).send("https://x/rec", "hello", "+15125551234")
        assert sent is False
        mock_smtp.assert_not_called()
