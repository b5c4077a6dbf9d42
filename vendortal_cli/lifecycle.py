from __future__ import annotations

from datetime import datetime, timezone
from typing import Dict, FrozenSet, Optional, Sequence

from vendortal_cli.exceptions import InvalidTransitionError
from vendortal_cli.models.assessments import (
    STATUS_COMPLETED,
    STATUS_IN_PROGRESS,
    STATUS_PENDING,
    STATUS_REVIEWED,
    STATUS_SENT,
    AssessmentStats,
    VendorAssessment,
)
from vendortal_cli.scoring import round_half_up

# completed -> in_progress is "request revision"; nothing else moves backward.
TRANSITIONS: Dict[str, FrozenSet[str]] = {
    STATUS_PENDING: frozenset({STATUS_SENT}),
    STATUS_SENT: frozenset({STATUS_IN_PROGRESS}),
    STATUS_IN_PROGRESS: frozenset({STATUS_COMPLETED}),
    STATUS_COMPLETED: frozenset({STATUS_REVIEWED, STATUS_IN_PROGRESS}),
    STATUS_REVIEWED: frozenset(),
}

_PROGRESS: Dict[str, int] = {
    STATUS_PENDING: 0,
    STATUS_SENT: 0,
    STATUS_IN_PROGRESS: 50,
    STATUS_COMPLETED: 100,
    STATUS_REVIEWED: 100,
}

_FINISHED = frozenset({STATUS_COMPLETED, STATUS_REVIEWED})


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, frozenset())


def require_transition(current: str, target: str) -> None:
    if not can_transition(current, target):
        raise InvalidTransitionError(
            f"Cannot move assessment from '{current or 'unknown'}' to '{target}'."
        )


def progress_for_status(status: str) -> int:
    return _PROGRESS.get(status, 0)


def _parse_timestamp(value: str) -> Optional[datetime]:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_overdue(assessment: VendorAssessment, now: Optional[datetime] = None) -> bool:
    """True when the due date has passed and the vendor has not finished.

    Due dates are informational; nothing closes an overdue assessment.
    """
    due = _parse_timestamp(assessment.due_date)
    if due is None:
        return False
    return due < (now or datetime.now(timezone.utc)) and assessment.status not in _FINISHED


def assessment_stats(
    assessments: Sequence[VendorAssessment],
    now: Optional[datetime] = None,
) -> AssessmentStats:
    total = len(assessments)
    completed = sum(1 for a in assessments if a.status == STATUS_COMPLETED)
    in_progress = sum(1 for a in assessments if a.status == STATUS_IN_PROGRESS)
    overdue = sum(1 for a in assessments if is_overdue(a, now))

    scores = [a.overall_score for a in assessments if a.overall_score is not None]
    average = sum(scores) / max(1, len(scores))

    return AssessmentStats(
        total=total,
        completed=completed,
        in_progress=in_progress,
        overdue=overdue,
        average_score=round_half_up(average),
        completion_rate=round_half_up(completed / total * 100) if total else 0,
    )
