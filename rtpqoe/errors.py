"""Exception types raised by the analyzer."""


class AnalysisError(Exception):
    """Base class for analyzer errors."""


class MalformedRecord(AnalysisError, ValueError):
    """An input row or packet is missing fields or fails numeric parsing."""

    def __init__(self, position: int, reason: str) -> None:
        super().__init__(f"record {position}: {reason}")
        self.position = position
        self.reason = reason


class SessionSetupFailure(AnalysisError):
    """Per-session state could not be created for a new session key."""


class UnreadableSource(AnalysisError, OSError):
    """The primary input could not be opened."""
