"""Admission gate: blacklist and TrueSpam checks.

Runs before any routing state is read.  The blacklist is an exact match on the
caller's number and applies to every leg.  The spam check is advisory and only
runs on the initial leg; once a dial attempt is in flight the call has already
been let through.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from callforward.call_signal import SpamAnnotation

logger = logging.getLogger(__name__)

DEFAULT_SPAM_THRESHOLD = 75

REASON_BLACKLISTED = "blacklisted"
REASON_SPAM = "spam"


@dataclass(frozen=True)
class Admission:
    admitted: bool
    reason: str = ""


ADMIT = Admission(admitted=True)


def evaluate(
    caller: str,
    spam: Optional[SpamAnnotation],
    is_initial_leg: bool,
    blocklist: frozenset[str] = frozenset(),
    threshold: float = DEFAULT_SPAM_THRESHOLD,
) -> Admission:
    if caller and caller in blocklist:
        logger.warning("Blocking call from blacklisted number: %s", caller)
        return Admission(admitted=False, reason=REASON_BLACKLISTED)

    if not is_initial_leg or spam is None:
        return ADMIT

    if not spam.matched:
        logger.info("TrueSpam: no match for %s", caller)
        return ADMIT

    logger.info("TrueSpam check - From: %s, score: %s, threshold: %s", caller, spam.score, threshold)
    if spam.score >= threshold:
        logger.warning("Blocking spam call from %s. TrueSpam score: %s", caller, spam.score)
        return Admission(admitted=False, reason=REASON_SPAM)
    return ADMIT
