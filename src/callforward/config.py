"""Startup configuration.

Checks that required environment variables are set before the server accepts
webhooks, and builds the frozen settings objects handed to the routing engine,
the cursor store and the voicemail notifier.  Called from app.py at startup so
that a missing key causes a clear failure rather than a silent mid-call crash.
"""

import logging
import os
import sys
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

REQUIRED_VARS = [
    "TWILIO_ACCOUNT_SID",
    "TWILIO_AUTH_TOKEN",
    "CALLER_ID",
]

OPTIONAL_VARS = [
    "PHONE_NUMBERS_PATH",
    "BLACKLIST_PATH",
    "SYNC_SERVICE_SID",
    "VOICEMAIL_TRANSCRIBE_CALLBACK",
    "SMTP_HOST",
    "SMTP_FROM_EMAIL",
    "EMAIL_FOR_VOICEMAIL",
    "LOG_LEVEL",
]

WRITE_MODES = {"before_response", "background"}
STORE_BACKENDS = {"sync", "memory"}


def validate_config() -> None:
    """Validate environment variables at startup.

    Exits the process with a clear error if any required variable is missing
    or empty.  Logs warnings for missing optional variables.
    """
    missing = [var for var in REQUIRED_VARS if not os.getenv(var)]

    if missing:
        print(
            f"\nFATAL: Missing required environment variables:\n"
            f"  {', '.join(missing)}\n"
            f"\nSet them in .env (local) or the deployment's secrets.\n",
            file=sys.stderr,
        )
        sys.exit(1)

    for var in OPTIONAL_VARS:
        if not os.getenv(var):
            logger.warning("Optional env var %s is not set", var)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Env var %s=%r is not an integer, using %d", name, raw, default)
        return default


def _env_positive_int(name: str, default: int) -> int:
    value = _env_int(name, default)
    if value <= 0:
        logger.warning("Env var %s=%d must be positive, using %d", name, value, default)
        return default
    return value


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name, "")
    if not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Env var %s=%r is not a number, using %s", name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    return raw not in {"0", "false", "no", "off"}


def _env_choice(name: str, default: str, choices: set[str]) -> str:
    raw = os.getenv(name, "").strip().lower()
    if not raw:
        return default
    if raw not in choices:
        logger.warning("Env var %s=%r not one of %s, using %s", name, raw, sorted(choices), default)
        return default
    return raw


@dataclass(frozen=True)
class RoutingConfig:
    """Per-deployment tunables for the routing engine."""

    caller_id: str = ""
    dial_timeout: int = 15
    forwarding_path: str = "/call-forwarding"
    spam_threshold: float = 75
    voicemail_max_length: int = 120
    transcribe_callback: str = "/voicemail-callback"
    voice: str = "Polly.Joanna"
    language: str = "en-US"

    @classmethod
    def from_env(cls) -> "RoutingConfig":
        return cls(
            caller_id=os.getenv("CALLER_ID", ""),
            dial_timeout=_env_positive_int("DIAL_TIMEOUT", 15),
            forwarding_path=os.getenv("FORWARDING_PATH", "/call-forwarding"),
            spam_threshold=_env_float("SPAM_THRESHOLD", 75),
            voicemail_max_length=_env_positive_int("VOICEMAIL_MAX_LENGTH", 120),
            transcribe_callback=os.getenv("VOICEMAIL_TRANSCRIBE_CALLBACK", "/voicemail-callback"),
            voice=os.getenv("VOICE", "Polly.Joanna"),
            language=os.getenv("VOICE_LANGUAGE", "en-US"),
        )


@dataclass(frozen=True)
class SyncConfig:
    """Where the cursor document lives and how to reach it."""

    account_sid: str = ""
    auth_token: str = ""
    api_key: str = ""
    api_secret: str = ""
    service_sid: str = "default"
    document_name: str = "callForwardingState"
    base_url: str = "https://sync.twilio.com/v1"
    timeout: float = 5.0

    @property
    def credentials(self) -> tuple[str, str]:
        """API key pair when configured, else account SID + auth token."""
        if self.api_key and self.api_secret:
            return self.api_key, self.api_secret
        return self.account_sid, self.auth_token

    @classmethod
    def from_env(cls) -> "SyncConfig":
        return cls(
            account_sid=os.getenv("TWILIO_ACCOUNT_SID", ""),
            auth_token=os.getenv("TWILIO_AUTH_TOKEN", ""),
            api_key=os.getenv("TWILIO_API_KEY", ""),
            api_secret=os.getenv("TWILIO_API_SECRET", ""),
            service_sid=os.getenv("SYNC_SERVICE_SID", "") or "default",
            document_name=os.getenv("SYNC_DOCUMENT_NAME", "") or "callForwardingState",
            base_url=os.getenv("SYNC_BASE_URL", "") or "https://sync.twilio.com/v1",
            timeout=_env_float("STORE_TIMEOUT", 5.0),
        )


@dataclass(frozen=True)
class SmtpConfig:
    host: str = ""
    port: int = 587
    secure: bool = False
    username: str = ""
    password: str = ""
    from_email: str = ""
    to_email: str = ""

    @property
    def is_configured(self) -> bool:
        return bool(self.host and self.from_email and self.to_email)

    @classmethod
    def from_env(cls) -> "SmtpConfig":
        return cls(
            host=os.getenv("SMTP_HOST", ""),
            port=_env_int("SMTP_PORT", 587),
            secure=_env_bool("SMTP_SECURE", False),
            username=os.getenv("SMTP_USERNAME", ""),
            password=os.getenv("SMTP_PASSWORD", ""),
            from_email=os.getenv("SMTP_FROM_EMAIL", ""),
            to_email=os.getenv("EMAIL_FOR_VOICEMAIL", ""),
        )


@dataclass(frozen=True)
class Settings:
    routing: RoutingConfig = field(default_factory=RoutingConfig)
    sync: SyncConfig = field(default_factory=SyncConfig)
    smtp: SmtpConfig = field(default_factory=SmtpConfig)
    phone_numbers_path: str = "assets/phone-numbers.json"
    blacklist_path: str = "assets/blacklist.json"
    cursor_store: str = "sync"
    write_mode: str = "before_response"
    validate_signature: bool = True
    public_base_url: str = ""
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            routing=RoutingConfig.from_env(),
            sync=SyncConfig.from_env(),
            smtp=SmtpConfig.from_env(),
            phone_numbers_path=os.getenv("PHONE_NUMBERS_PATH", "") or "assets/phone-numbers.json",
            blacklist_path=os.getenv("BLACKLIST_PATH", "") or "assets/blacklist.json",
            cursor_store=_env_choice("CURSOR_STORE", "sync", STORE_BACKENDS),
            write_mode=_env_choice("CURSOR_WRITE_MODE", "before_response", WRITE_MODES),
            validate_signature=_env_bool("TWILIO_VALIDATE_SIGNATURE", True),
            public_base_url=os.getenv("PUBLIC_BASE_URL", "").rstrip("/"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )
