from twilio.twiml.voice_response import VoiceResponse

from callforward.config import RoutingConfig
from callforward.routing import Dial, Hangup, Intent, Record, Reject, Say


def render(intents: list[Intent], config: RoutingConfig | None = None) -> str:
    """Serialize routing intents to a TwiML document."""
    config = config or RoutingConfig()
    voice_opts = {"voice": config.voice, "language": config.language}
    response = VoiceResponse()

    for intent in intents:
        if isinstance(intent, Say):
            response.say(intent.text, **voice_opts)
        elif isinstance(intent, Dial):
            dial_opts = {"timeout": intent.timeout}
            if intent.action:
                dial_opts["action"] = intent.action
                dial_opts["method"] = "POST"
            if intent.caller_id:
                dial_opts["caller_id"] = intent.caller_id
            dial = response.dial(**dial_opts)
            dial.number(intent.number)
        elif isinstance(intent, Record):
            record_opts = {
                "max_length": intent.max_length,
                "transcribe": intent.transcribe,
                "play_beep": intent.play_beep,
            }
            if intent.transcribe_callback:
                record_opts["transcribe_callback"] = intent.transcribe_callback
            response.record(**record_opts)
        elif isinstance(intent, Reject):
            response.reject(reason=intent.reason)
        elif isinstance(intent, Hangup):
            response.hangup()
        else:
            raise TypeError(f"Unknown intent: {intent!r}")

    return str(response)
