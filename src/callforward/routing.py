"""Call forwarding state machine.

Nothing here is stored: the outcome of each leg is derived from the inbound
signal, the forwarding list and the cursor read from the store.  The engine
performs no I/O; it returns a ``Decision`` carrying the TwiML intents to emit
and the cursor value the caller should persist.
"""

import logging
from dataclasses import dataclass, field
from typing import Optional, Union

from callforward.call_signal import CallSignal
from callforward.config import RoutingConfig
from callforward.numbers import ForwardingEntry
from callforward.outcomes import Outcome

logger = logging.getLogger(__name__)


# ── Intents ──

@dataclass(frozen=True)
class Say:
    text: str


@dataclass(frozen=True)
class Dial:
    number: str
    timeout: int
    caller_id: str = ""
    action: str = ""


@dataclass(frozen=True)
class Record:
    max_length: int
    transcribe: bool = True
    transcribe_callback: str = ""
    play_beep: bool = True


@dataclass(frozen=True)
class Reject:
    reason: str = "rejected"


@dataclass(frozen=True)
class Hangup:
    pass


Intent = Union[Say, Dial, Record, Reject, Hangup]


@dataclass
class Decision:
    outcome: Outcome
    intents: list[Intent] = field(default_factory=list)
    next_cursor: Optional[int] = None
    index: Optional[int] = None


CONNECTED_MESSAGE = "Call connected successfully."
UNAVAILABLE_MESSAGE = "We're sorry, the call forwarding service is unavailable. Please try again later."
ERROR_MESSAGE = "An error occurred. Please try again later."
VOICEMAIL_APOLOGY = "We're sorry, but we couldn't reach anyone at this time."
VOICEMAIL_PROMPT = "Please leave your name, message, and contact information after the beep."
VOICEMAIL_GOODBYE = "Thank you. Goodbye."


def dial_announcement(entry: ForwardingEntry, index: int) -> str:
    return f"Please wait while we connect your call. Trying to reach {entry.label(index)}."


class RoutingEngine:
    def __init__(self, config: RoutingConfig | None = None):
        self.config = config or RoutingConfig()

    def decide(self, signal: CallSignal, entries: list[ForwardingEntry], cursor: int) -> Decision:
        """Pick the outcome for an admitted leg.  First matching rule wins."""
        if signal.is_connected:
            return Decision(Outcome.CONNECTED, [Say(CONNECTED_MESSAGE)])

        if not entries:
            return self.unavailable()

        count = len(entries)
        if cursor >= count:
            if not signal.is_initial_leg:
                return self.voicemail()
            logger.info("Stale cursor %d on a new call (list size %d), restarting at 0", cursor, count)
            cursor = 0

        index = cursor % count
        return self._dial(entries[index], index)

    def _dial(self, entry: ForwardingEntry, index: int) -> Decision:
        cfg = self.config
        return Decision(
            Outcome.DIAL,
            [
                Say(dial_announcement(entry, index)),
                Dial(
                    number=entry.number,
                    timeout=cfg.dial_timeout,
                    caller_id=cfg.caller_id,
                    action=cfg.forwarding_path,
                ),
            ],
            next_cursor=index + 1,
            index=index,
        )

    def voicemail(self) -> Decision:
        cfg = self.config
        return Decision(
            Outcome.VOICEMAIL,
            [
                Say(VOICEMAIL_APOLOGY),
                Say(VOICEMAIL_PROMPT),
                Record(
                    max_length=cfg.voicemail_max_length,
                    transcribe=True,
                    transcribe_callback=cfg.transcribe_callback,
                    play_beep=True,
                ),
                Say(VOICEMAIL_GOODBYE),
                Hangup(),
            ],
        )

    def unavailable(self) -> Decision:
        return Decision(Outcome.UNAVAILABLE, [Say(UNAVAILABLE_MESSAGE), Hangup()])

    def reject(self, reason: str) -> Decision:
        logger.info("Rejecting call (%s)", reason)
        return Decision(Outcome.REJECTED, [Reject("rejected")])

    def apology(self) -> Decision:
        return Decision(Outcome.ERROR, [Say(ERROR_MESSAGE), Hangup()])
