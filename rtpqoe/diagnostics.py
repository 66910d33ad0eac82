"""Per-stage diagnostics channel.

Stages never let per-record problems escape as exceptions.  Instead each
problem is written to the log and kept here so callers can inspect counts
after the stage returns.
"""

import logging
from typing import Dict, List, NamedTuple

logger = logging.getLogger(__name__)


MALFORMED = "malformed_record"
SESSION_SETUP = "session_setup_failure"
EMPTY_INPUT = "empty_input"
DEGENERATE_GROUP = "degenerate_group"

_LEVELS = {
    MALFORMED: logging.WARNING,
    SESSION_SETUP: logging.WARNING,
    EMPTY_INPUT: logging.INFO,
    DEGENERATE_GROUP: logging.DEBUG,
}


class Issue(NamedTuple):
    kind: str
    position: int
    message: str


class Diagnostics:
    """Collects non-fatal issues raised while a stage runs."""

    def __init__(self, stage: str) -> None:
        self.stage = stage
        self.issues: List[Issue] = []

    def report(self, kind: str, position: int, message: str) -> None:
        self.issues.append(Issue(kind, position, message))
        logger.log(
            _LEVELS.get(kind, logging.WARNING),
            "%s: %s at %d: %s", self.stage, kind, position, message,
        )

    def count(self, kind: str) -> int:
        return sum(1 for issue in self.issues if issue.kind == kind)

    def counts(self) -> Dict[str, int]:
        result: Dict[str, int] = {}
        for issue in self.issues:
            result[issue.kind] = result.get(issue.kind, 0) + 1
        return result

    def __len__(self) -> int:
        return len(self.issues)
