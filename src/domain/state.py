from datetime import datetime
from typing import Any

from src.domain.entities import ExportJob, ExportStatus

TERMINAL_STATES: frozenset[ExportStatus] = frozenset({"completed", "failed"})

_ALLOWED: dict[ExportStatus, frozenset[ExportStatus]] = {
    "pending": frozenset({"processing"}),
    "processing": frozenset({"completed", "failed"}),
    "completed": frozenset(),
    "failed": frozenset(),
}


def can_transition(current: ExportStatus, new: ExportStatus) -> bool:
    """
    Export jobs only move forward: pending -> processing -> completed | failed.
    Terminal states are immutable.
    """
    return new in _ALLOWED[current]


def is_terminal(status: ExportStatus) -> bool:
    return status in TERMINAL_STATES


def transition(
    job: ExportJob,
    new_status: ExportStatus,
    now: datetime,
    **fields: Any,
) -> ExportJob:
    """
    Return a NEW ExportJob in new_status with the extra fields applied.
    Raises ValueError if the transition is invalid.
    """
    if not can_transition(job.status, new_status):
        raise ValueError(f"Invalid transition from {job.status} to {new_status}")

    updates: dict[str, Any] = {"status": new_status, **fields}
    if new_status in TERMINAL_STATES:
        updates["completed_at"] = now

    return job.model_copy(update=updates)
