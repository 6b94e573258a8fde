import json
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)

CONNECTED_STATUSES = frozenset({"completed", "answered"})

TRUESPAM_ADDON = "truecnam_truespam"


@dataclass(frozen=True)
class SpamAnnotation:
    matched: bool
    score: float


def _match_flag(value) -> bool:
    """TrueSpam reports the match as 1, "1" or true depending on the payload encoding."""
    if isinstance(value, str):
        return value.strip().lower() in {"1", "true"}
    if isinstance(value, (bool, int, float)):
        return value == 1
    return False


def parse_spam_annotation(raw) -> Optional[SpamAnnotation]:
    """Extract the TrueSpam verdict from Twilio's ``AddOns`` payload.

    Twilio posts ``AddOns`` as a JSON string.  Anything missing, unsuccessful
    or malformed yields ``None`` so the admission gate fails open.
    """
    if not raw:
        return None

    if isinstance(raw, str):
        try:
            add_ons = json.loads(raw)
        except ValueError:
            logger.warning("AddOns payload is not valid JSON, ignoring spam check")
            return None
    else:
        add_ons = raw

    if not isinstance(add_ons, dict) or add_ons.get("status") != "successful":
        return None

    results = add_ons.get("results")
    truespam = results.get(TRUESPAM_ADDON) if isinstance(results, dict) else None
    if not isinstance(truespam, dict) or truespam.get("status") != "successful":
        logger.warning("TrueSpam add-on returned an unexpected payload or failed status: %r", truespam)
        return None

    result = truespam.get("result")
    if not isinstance(result, dict):
        logger.warning("TrueSpam add-on result missing: %r", truespam)
        return None

    matched = _match_flag(result.get("spam_score_match"))
    if not matched:
        return SpamAnnotation(matched=False, score=0.0)

    try:
        score = float(result.get("spam_score"))
    except (TypeError, ValueError):
        logger.warning("TrueSpam score is not numeric: %r", result.get("spam_score"))
        return None
    return SpamAnnotation(matched=True, score=score)


@dataclass(frozen=True)
class CallSignal:
    """One webhook activation, as delivered by the carrier."""

    caller: str = ""
    dial_status: str = ""
    spam: Optional[SpamAnnotation] = None
    call_sid: str = ""

    @property
    def is_initial_leg(self) -> bool:
        return not self.dial_status

    @property
    def is_connected(self) -> bool:
        return self.dial_status in CONNECTED_STATUSES

    @classmethod
    def from_form(cls, form) -> "CallSignal":
        return cls(
            caller=(form.get("From") or "").strip(),
            dial_status=(form.get("DialCallStatus") or "").strip().lower(),
            spam=parse_spam_annotation(form.get("AddOns")),
            call_sid=form.get("CallSid") or "",
        )
