# shopfloor_core/workflows/gates.py
from __future__ import annotations

from typing import Optional

from .graph import normalize_stage


def gate_failure(check, *, batch_id: int, stage: str) -> Optional[str]:
    """
    Why `check` cannot open a quality gate for batch `batch_id` leaving `stage`,
    or None when it can.

    The check must belong to the same batch, have been taken at the stage
    being left, and either have passed or have been resolved.
    """
    if check.batch_id != batch_id:
        return f"Quality check {check.pk} belongs to batch {check.batch_id}, not {batch_id}."

    if normalize_stage(check.stage) != normalize_stage(stage):
        return f"Quality check {check.pk} was taken at '{check.stage}', not '{stage}'."

    if not check.satisfies_gate:
        return f"Quality check {check.pk} has outcome '{check.outcome}' and is unresolved."

    return None
