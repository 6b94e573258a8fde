import json
import logging
import re
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)

E164_PATTERN = re.compile(r"^\+?[1-9]\d{1,14}$")


def is_e164(number) -> bool:
    """True when ``number`` looks like an E.164 address."""
    return isinstance(number, str) and bool(E164_PATTERN.match(number))


@dataclass(frozen=True)
class ForwardingEntry:
    number: str
    name: str = ""

    def label(self, index: int) -> str:
        """Name to announce, falling back to the 1-based position."""
        return self.name or f"recipient {index + 1}"


def _read_json(path: Path):
    return json.loads(path.read_text(encoding="utf-8"))


def load_forwarding_list(path) -> list[ForwardingEntry]:
    """Load the dial sequence, dropping entries that are not E.164.

    A missing or unreadable file yields an empty list, which routes every
    call to the unavailable message instead of failing the webhook.
    """
    path = Path(path)
    try:
        data = _read_json(path)
    except (OSError, ValueError) as e:
        logger.error("Failed to load forwarding list %s: %s", path, e)
        return []

    raw_entries = data.get("whitelistedNumbers", []) if isinstance(data, dict) else []
    if not isinstance(raw_entries, list):
        logger.error("Forwarding list %s: whitelistedNumbers is not a list", path)
        return []

    entries = []
    for raw in raw_entries:
        if not isinstance(raw, dict) or not is_e164(raw.get("number")):
            continue
        name = raw.get("name") or ""
        entries.append(ForwardingEntry(number=raw["number"], name=str(name).strip()))

    dropped = len(raw_entries) - len(entries)
    if dropped:
        logger.warning("Dropped %d invalid forwarding entries from %s", dropped, path)
    return entries


def load_block_list(path) -> frozenset[str]:
    """Load blacklisted caller numbers.  A missing file means no blacklist."""
    if not path:
        return frozenset()
    path = Path(path)
    if not path.exists():
        logger.info("Blacklist %s not found - no numbers will be blacklisted", path)
        return frozenset()
    try:
        data = _read_json(path)
    except (OSError, ValueError) as e:
        logger.error("Failed to load blacklist %s: %s", path, e)
        return frozenset()

    raw_numbers = data.get("blacklistedNumbers", []) if isinstance(data, dict) else []
    if not isinstance(raw_numbers, list):
        logger.error("Blacklist %s: blacklistedNumbers is not a list", path)
        return frozenset()

    blocked = frozenset(n for n in raw_numbers if is_e164(n))
    logger.info("Loaded %d blacklisted numbers", len(blocked))
    return blocked
