"""Violation counter of a monitored voting session.

Phases::

    MONITORING -> WARNED_1 -> WARNED_2 -> BLOCKED (terminal)

A clean check clears the current warning (back to ``MONITORING``) but never
decreases the violation count. The third violation stops monitoring for good.
"""

import enum
from typing import Optional, Union

from pydantic import BaseModel

from voting_guard.schemas.security import DescriptorCheckResult, SimpleCheckResult

MAX_VIOLATIONS = 3
BLOCKED_MESSAGE = "Maximum violations reached. Voting blocked."


class Severity(str, enum.Enum):
    WARNING = "warning"
    ERROR = "error"


class MonitorPhase(str, enum.Enum):
    MONITORING = "monitoring"
    WARNED_1 = "warned_1"
    WARNED_2 = "warned_2"
    BLOCKED = "blocked"


class MonitorWarning(BaseModel):
    message: str
    severity: Severity


class BlockInfo(BaseModel):
    reason: str
    count: int


class MonitorEventKind(str, enum.Enum):
    CLEARED = "cleared"
    WARNING = "warning"
    BLOCKED = "blocked"
    IGNORED = "ignored"  # Résultat reçu après le blocage


class MonitorEvent(BaseModel):
    kind: MonitorEventKind
    warning: Optional[MonitorWarning] = None
    block: Optional[BlockInfo] = None


def warning_for(count: int, reason: str) -> MonitorWarning:
    """Warning shown for the first and second violations."""
    if count == 1:
        return MonitorWarning(
            message=f"Warning 1: {reason}. Please follow the rules.",
            severity=Severity.WARNING,
        )
    return MonitorWarning(
        message=f"Warning {count}: {reason}. Next violation will block your vote.",
        severity=Severity.ERROR,
    )


class SessionMonitorState(BaseModel):
    """State of one monitored voting session."""

    violation_count: int = 0
    current_warning: Optional[MonitorWarning] = None
    is_monitoring: bool = True
    faces_in_frame: int = 0
    face_match_score: Optional[float] = None
    max_violations: int = MAX_VIOLATIONS

    @property
    def is_blocked(self) -> bool:
        return self.violation_count >= self.max_violations

    @property
    def phase(self) -> MonitorPhase:
        if self.is_blocked:
            return MonitorPhase.BLOCKED
        if self.current_warning is None:
            return MonitorPhase.MONITORING
        if self.violation_count == 1:
            return MonitorPhase.WARNED_1
        return MonitorPhase.WARNED_2

    @property
    def remaining_warnings(self) -> int:
        return max(0, self.max_violations - self.violation_count)

    def apply(self, result: Union[SimpleCheckResult, DescriptorCheckResult]) -> MonitorEvent:
        """Update the state with one check result and report what happened."""
        if self.is_blocked:
            return MonitorEvent(kind=MonitorEventKind.IGNORED)

        if isinstance(result, DescriptorCheckResult):
            self.faces_in_frame = result.faces_in_frame
            self.face_match_score = result.face_match_score

        if not result.violation:
            self.current_warning = None
            return MonitorEvent(kind=MonitorEventKind.CLEARED)

        reason = result.message or result.violation_type or "rule violation"
        return self.record_violation(reason)

    def record_violation(self, reason: str) -> MonitorEvent:
        """Count one violation; the last allowed one blocks the session."""
        if self.is_blocked:
            return MonitorEvent(kind=MonitorEventKind.IGNORED)

        self.violation_count += 1

        if self.violation_count >= self.max_violations:
            self.is_monitoring = False
            self.current_warning = MonitorWarning(message=BLOCKED_MESSAGE, severity=Severity.ERROR)
            return MonitorEvent(
                kind=MonitorEventKind.BLOCKED,
                block=BlockInfo(reason=reason, count=self.violation_count),
            )

        self.current_warning = warning_for(self.violation_count, reason)
        return MonitorEvent(kind=MonitorEventKind.WARNING, warning=self.current_warning)

    def force_block(self, reason: str) -> MonitorEvent:
        """Block immediately, e.g. when the server already blocked the voter."""
        if self.is_blocked:
            return MonitorEvent(kind=MonitorEventKind.IGNORED)
        self.violation_count = max(self.violation_count, self.max_violations)
        self.is_monitoring = False
        self.current_warning = MonitorWarning(message=BLOCKED_MESSAGE, severity=Severity.ERROR)
        return MonitorEvent(
            kind=MonitorEventKind.BLOCKED,
            block=BlockInfo(reason=reason, count=self.violation_count),
        )
