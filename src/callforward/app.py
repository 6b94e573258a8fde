"""FastAPI webhook service for sequential call forwarding.

Twilio posts the inbound call and every ``<Dial>`` completion to
``/call-forwarding`` and the voicemail transcription to
``/voicemail-callback``.  Requests are checked against the Twilio signature
when an auth token is configured.  Run with
``uvicorn callforward.app:create_app --factory`` or ``python -m callforward.app``.
"""

import logging
import os
from contextlib import asynccontextmanager

import uvicorn
from dotenv import load_dotenv
from fastapi import BackgroundTasks, FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from twilio.request_validator import RequestValidator

from callforward import config
from callforward.call_signal import CallSignal
from callforward.config import Settings
from callforward.handler import CallForwarder
from callforward.routing import RoutingEngine
from callforward.store import create_store
from callforward.voicemail import VoicemailNotifier

logger = logging.getLogger(__name__)

FORWARDING_ROUTE = "/call-forwarding"
VOICEMAIL_ROUTE = "/voicemail-callback"
EMPTY_TWIML = '<?xml version="1.0" encoding="UTF-8"?><Response />'


def _twiml_response(xml: str, status_code: int = 200) -> Response:
    return Response(content=xml, media_type="application/xml", status_code=status_code)


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def create_app(settings: Settings | None = None, store=None, notifier=None) -> FastAPI:
    """Build the webhook app.  Reads and validates the environment unless settings are given."""
    if settings is None:
        load_dotenv()
        config.validate_config()
        settings = Settings.from_env()
    _configure_logging(settings.log_level)

    if store is None:
        store = create_store(settings.cursor_store, settings.sync)
    if notifier is None:
        notifier = VoicemailNotifier(settings.smtp)

    forwarder = CallForwarder(
        RoutingEngine(settings.routing),
        store,
        session_key=settings.sync.document_name,
        phone_numbers_path=settings.phone_numbers_path,
        blacklist_path=settings.blacklist_path,
    )
    validator = None
    if settings.validate_signature and settings.sync.auth_token:
        validator = RequestValidator(settings.sync.auth_token)
    else:
        logger.warning("Twilio signature validation is disabled")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await store.close()

    app = FastAPI(title="Call Forwarding", lifespan=lifespan)
    app.state.settings = settings
    app.state.forwarder = forwarder
    app.state.notifier = notifier

    def _signed_url(request: Request) -> str:
        if not settings.public_base_url:
            return str(request.url)
        url = f"{settings.public_base_url}{request.url.path}"
        if request.url.query:
            url = f"{url}?{request.url.query}"
        return url

    def _is_authentic(request: Request, form: dict) -> bool:
        if validator is None:
            return True
        signature = request.headers.get("X-Twilio-Signature", "")
        if not signature:
            return False
        return validator.validate(_signed_url(request), form, signature)

    @app.get("/health")
    async def health():
        return PlainTextResponse("ok")

    @app.post(FORWARDING_ROUTE)
    async def call_forwarding(request: Request, background_tasks: BackgroundTasks):
        form = {k: str(v) for k, v in (await request.form()).items()}
        if not _is_authentic(request, form):
            logger.warning("Rejected forwarding webhook with invalid Twilio signature")
            return PlainTextResponse("invalid signature", status_code=403)

        defer = settings.write_mode == "background"
        result = await forwarder.handle(CallSignal.from_form(form), defer_write=defer)
        if result.pending_write is not None:
            background_tasks.add_task(forwarder.commit, result.pending_write)
        return _twiml_response(result.twiml)

    @app.post(VOICEMAIL_ROUTE)
    async def voicemail_callback(request: Request):
        form = {k: str(v) for k, v in (await request.form()).items()}
        if not _is_authentic(request, form):
            logger.warning("Rejected voicemail webhook with invalid Twilio signature")
            return PlainTextResponse("invalid signature", status_code=403)

        sent = await notifier.send(
            recording_url=form.get("RecordingUrl", ""),
            transcription=form.get("TranscriptionText", ""),
            caller=form.get("From", ""),
        )
        return _twiml_response(EMPTY_TWIML, status_code=200 if sent else 500)

    return app


if __name__ == "__main__":
    port = int(os.getenv("PORT", "8765"))
    uvicorn.run("callforward.app:create_app", factory=True, host=os.getenv("HOST", "0.0.0.0"), port=port)
