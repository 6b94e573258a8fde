from enum import Enum

TERMINAL_OUTCOMES = {
    "connected", "unavailable", "voicemail", "rejected", "error",
}


class Outcome(Enum):
    CONNECTED = "connected"
    UNAVAILABLE = "unavailable"
    VOICEMAIL = "voicemail"
    DIAL = "dial"
    REJECTED = "rejected"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self.value in TERMINAL_OUTCOMES

    @property
    def advances_cursor(self) -> bool:
        return self is Outcome.DIAL
