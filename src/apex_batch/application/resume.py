"""Decides which work units a run still has to execute."""

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from apex_batch.domain.models import WorkUnit


@dataclass(frozen=True)
class ResumePlan:
    """Pending units of a run, computed once before any worker starts."""

    pending: List[WorkUnit] = field(default_factory=list)
    skipped: int = 0
    checkpoint: Optional[str] = None
    resume_point_missing: bool = False

    @property
    def resuming(self) -> bool:
        return self.checkpoint is not None and not self.resume_point_missing


def compute_pending(units: Sequence[WorkUnit], checkpoint: Optional[str]) -> ResumePlan:
    """
    Prune units that a previous run already executed.

    Everything up to and including the checkpointed unit is skipped; paths
    are compared case-insensitively. A checkpoint that matches no listed
    unit cannot be trusted, so every unit becomes pending again and the
    plan is flagged with resume_point_missing.
    """
    if not checkpoint:
        return ResumePlan(pending=list(units))

    wanted = checkpoint.lower()
    for index, unit in enumerate(units):
        if str(unit.path).lower() == wanted:
            return ResumePlan(
                pending=list(units[index + 1:]),
                skipped=index + 1,
                checkpoint=checkpoint,
            )

    return ResumePlan(pending=list(units), checkpoint=checkpoint, resume_point_missing=True)
