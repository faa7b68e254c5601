# shopfloor_core/services/audit.py
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from shopfloor_core.models import AuditLogEntry, Batch, Worker


def record_entry(
    *,
    actor: Optional[Worker],
    action: str,
    context: str = "production",
    batch: Optional[Batch] = None,
    sequence: Optional[int] = None,
    from_stage: str = "",
    to_stage: str = "",
    detail: Optional[Dict[str, Any]] = None,
) -> AuditLogEntry:
    """
    Append one audit entry. Callers own the transaction: stage-bearing
    entries must be written in the same atomic block as the stage change.
    """
    return AuditLogEntry.objects.create(
        actor=actor,
        action=action,
        context=context,
        batch=batch,
        sequence=sequence,
        from_stage=from_stage or "",
        to_stage=to_stage or "",
        detail=detail or {},
    )


def stage_entries(batch_id) -> List[AuditLogEntry]:
    return list(
        AuditLogEntry.objects.filter(batch_id=batch_id, sequence__isnull=False)
        .select_related("actor")
        .order_by("sequence")
    )


def replay_stage_history(entries: Iterable[AuditLogEntry]) -> List[str]:
    """
    Rebuild the sequence of stages a batch occupied from its stage-bearing
    audit entries. The last element is the batch's current stage.

    Raises ValueError on a gap in sequence numbers or an entry whose
    from_stage does not continue the previous to_stage.
    """
    stages: List[str] = []
    expected = 0

    for entry in sorted(entries, key=lambda e: e.sequence):
        if entry.sequence != expected:
            raise ValueError(
                f"Audit history gap for batch {entry.batch_id}: "
                f"expected sequence {expected}, found {entry.sequence}."
            )
        if stages and entry.from_stage != stages[-1]:
            raise ValueError(
                f"Audit history mismatch at sequence {entry.sequence}: "
                f"{entry.from_stage} does not follow {stages[-1]}."
            )
        stages.append(entry.to_stage)
        expected += 1

    return stages
