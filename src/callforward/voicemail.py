import asyncio
import html
import logging
import smtplib
import ssl
from email.message import EmailMessage

from callforward.config import SmtpConfig

logger = logging.getLogger(__name__)

NO_TRANSCRIPTION = "No transcription available."
UNKNOWN_CALLER = "Unknown number"


def build_voicemail_email(
    recording_url: str,
    transcription: str,
    caller: str,
    sender: str,
    recipient: str,
) -> EmailMessage:
    """Plain-text + HTML notification for a new voicemail."""
    transcription = transcription or NO_TRANSCRIPTION
    caller = caller or UNKNOWN_CALLER

    msg = EmailMessage()
    msg["Subject"] = f"New Voicemail from {caller}"
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content(
        f"You received a new voicemail from {caller}.\n\n"
        f"Transcription: {transcription}\n\n"
        f"Recording: {recording_url}"
    )
    msg.add_alternative(
        f"<p>You received a new voicemail from {html.escape(caller)}.</p>\n"
        f"<h3>Transcription:</h3>\n"
        f"<p>{html.escape(transcription)}</p>\n"
        f"<h3>Recording:</h3>\n"
        f'<p><a href="{html.escape(recording_url or "", quote=True)}">Listen to recording</a></p>',
        subtype="html",
    )
    return msg


class VoicemailNotifier:
    """Emails the recording link and transcript once Twilio finishes a voicemail."""

    def __init__(self, config: SmtpConfig, timeout: float = 15.0):
        self.config = config
        self.timeout = timeout

    async def send(self, recording_url: str, transcription: str, caller: str) -> bool:
        if not self.config.is_configured:
            logger.warning("SMTP not configured, dropping voicemail notification from %s", caller)
            return False

        msg = build_voicemail_email(
            recording_url,
            transcription,
            caller,
            sender=self.config.from_email,
            recipient=self.config.to_email,
        )
        try:
            await asyncio.to_thread(self._send_sync, msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error("Error sending voicemail email for %s: %s", caller or UNKNOWN_CALLER, e)
            return False
        logger.info("Voicemail email sent for %s", caller or UNKNOWN_CALLER)
        return True

    def _connect(self, context: ssl.SSLContext) -> smtplib.SMTP:
        cfg = self.config
        if cfg.secure:
            return smtplib.SMTP_SSL(cfg.host, cfg.port, timeout=self.timeout, context=context)
        return smtplib.SMTP(cfg.host, cfg.port, timeout=self.timeout)

    def _send_sync(self, msg: EmailMessage) -> None:
        cfg = self.config
        context = ssl.create_default_context()
        with self._connect(context) as server:
            if not cfg.secure:
                server.ehlo()
                if server.has_extn("starttls"):
                    server.starttls(context=context)
            if cfg.username and cfg.password:
                server.login(cfg.username, cfg.password)
            server.send_message(msg)
