"""Per-leg orchestration for the forwarding webhook.

Each activation is handled from scratch: the caller is screened, the cursor
is read from the store, the routing engine decides, the cursor advance is
written (or handed back for the route to run after responding) and the
intents are rendered to TwiML.  No failure escapes ``handle``; the caller
always gets a TwiML document.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from callforward import admission
from callforward.call_signal import CallSignal
from callforward.numbers import load_block_list, load_forwarding_list
from callforward.routing import Decision, RoutingEngine
from callforward.store import CursorSnapshot, StoreError
from callforward.twiml import render

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CursorWrite:
    """Cursor advance still owed to the store after a DIAL decision."""

    session_key: str
    value: int
    revision: Optional[str] = None


@dataclass
class LegResult:
    decision: Decision
    twiml: str
    pending_write: Optional[CursorWrite] = None


class CallForwarder:
    """Runs one leg: admission, cursor read, decision, cursor write, render.

    Every path returns exactly one TwiML document; store outages and
    unexpected faults become the apology-and-hangup response.
    """

    def __init__(
        self,
        engine: RoutingEngine,
        store,
        *,
        session_key: str = "callForwardingState",
        phone_numbers_path: str = "assets/phone-numbers.json",
        blacklist_path: str = "assets/blacklist.json",
    ):
        self.engine = engine
        self.store = store
        self.session_key = session_key
        self.phone_numbers_path = phone_numbers_path
        self.blacklist_path = blacklist_path

    async def handle(self, signal: CallSignal, *, defer_write: bool = False) -> LegResult:
        """Answer one webhook leg.

        With ``defer_write`` the cursor advance is returned as
        ``pending_write`` for the caller to run after the response is sent;
        otherwise it is attempted here before returning.
        """
        logger.info(
            "Leg received: call=%s from=%s dial_status=%s",
            signal.call_sid, signal.caller, signal.dial_status or "<initial>",
        )
        try:
            decision, write = await self._decide(signal)
        except StoreError:
            logger.exception("Cursor store unavailable for call %s", signal.call_sid)
            decision, write = self.engine.apology(), None
        except Exception:
            logger.exception("Unexpected error routing call %s", signal.call_sid)
            decision, write = self.engine.apology(), None

        if write is not None and not defer_write:
            await self.commit(write)
            write = None

        try:
            twiml = render(decision.intents, self.engine.config)
        except Exception:
            logger.exception("Failed to render TwiML for call %s", signal.call_sid)
            decision, write = self.engine.apology(), None
            twiml = render(decision.intents, self.engine.config)

        logger.info(
            "Leg decided: call=%s outcome=%s index=%s terminal=%s",
            signal.call_sid, decision.outcome.value, decision.index, decision.outcome.is_terminal,
        )
        return LegResult(decision=decision, twiml=twiml, pending_write=write)

    async def _decide(self, signal: CallSignal) -> tuple[Decision, Optional[CursorWrite]]:
        blocklist = load_block_list(self.blacklist_path)
        verdict = admission.evaluate(
            signal.caller,
            signal.spam,
            signal.is_initial_leg,
            blocklist=blocklist,
            threshold=self.engine.config.spam_threshold,
        )
        if not verdict.admitted:
            return self.engine.reject(verdict.reason), None

        entries = load_forwarding_list(self.phone_numbers_path)
        snapshot: CursorSnapshot = await self.store.get_cursor(self.session_key)
        decision = self.engine.decide(signal, entries, snapshot.value)

        if not decision.outcome.advances_cursor or decision.next_cursor is None:
            return decision, None
        return decision, CursorWrite(self.session_key, decision.next_cursor, snapshot.revision)

    async def commit(self, write: CursorWrite) -> bool:
        """Best-effort cursor advance.  Never raises."""
        try:
            return await self.store.set_cursor(write.session_key, write.value, write.revision)
        except Exception:
            logger.exception("Failed to persist cursor %d for %s", write.value, write.session_key)
            return False
