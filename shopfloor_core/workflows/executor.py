# shopfloor_core/workflows/executor.py

from __future__ import annotations

import logging

from django.db import DatabaseError, IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, Batch, QualityCheck, StageAlert
from shopfloor_core.permissions import authorize
from shopfloor_core.services.audit import record_entry
from shopfloor_core.workflows import MANAGE_ROLES, normalize_stage
from shopfloor_core.workflows.errors import (
    Conflict,
    Internal,
    InvalidTransition,
    NotFound,
    QualityGateNotSatisfied,
    WorkflowError,
)
from shopfloor_core.workflows.gates import gate_failure

logger = logging.getLogger(__name__)


def _load_batch(batch_id) -> Batch:
    """
    Fresh, row-locked read of the batch. Never served from a cache.
    """
    try:
        return Batch.objects.select_for_update().get(pk=batch_id)
    except (Batch.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Batch {batch_id} not found.")


def _require_quality_gate(batch: Batch, quality_check_id) -> QualityCheck:
    if quality_check_id in (None, ""):
        raise QualityGateNotSatisfied(
            f"Leaving '{batch.current_stage}' requires a quality check."
        )

    try:
        check = QualityCheck.objects.filter(pk=quality_check_id).first()
    except (TypeError, ValueError):
        check = None
    if check is None:
        raise NotFound(f"Quality check {quality_check_id} not found.")

    reason = gate_failure(check, batch_id=batch.pk, stage=batch.current_stage)
    if reason:
        raise QualityGateNotSatisfied(reason)
    return check


def _resolve_open_stage_alerts(*, batch_id: int, stage: str) -> int:
    now = timezone.now()

    qs = StageAlert.objects.filter(
        batch_id=batch_id,
        stage=stage,
        resolved_at__isnull=True,
    )

    updated = 0
    for alert in qs.iterator():
        alert.resolved_at = now
        delta = now - alert.triggered_at
        alert.duration_seconds = max(0, int(delta.total_seconds()))
        alert.save(update_fields=["resolved_at", "duration_seconds"])
        updated += 1

    return updated


def transition(
    *,
    batch_id,
    target_stage: str,
    acting_worker_id,
    quality_check_id=None,
    notes: str = "",
) -> Batch:
    """
    Move a batch to `target_stage` along the configured stage graph.

    Validation order: acting worker (Unauthorized / Forbidden), batch
    (NotFound), edge (InvalidTransition), quality gate
    (QualityGateNotSatisfied / NotFound). The stage update is a
    compare-and-swap on (current_stage, version) and shares one transaction
    with its audit entry; a lost race raises Conflict and writes nothing.
    """
    actor = authorize(acting_worker_id, MANAGE_ROLES)
    graph = load_stage_graph()
    target = normalize_stage(target_stage)

    try:
        with transaction.atomic():
            batch = _load_batch(batch_id)
            current = batch.current_stage

            # 1) Edge legality
            if batch.is_complete:
                raise InvalidTransition(
                    f"Batch {batch.batch_number} is complete and cannot change stage."
                )
            if not graph.has_stage(target):
                raise InvalidTransition(f"Unknown stage: {target}.")

            edge = graph.edge(current, target)
            if edge is None:
                raise InvalidTransition(f"Invalid stage transition: {current} -> {target}.")

            # 2) Quality gate
            check = None
            if edge.requires_quality_gate:
                check = _require_quality_gate(batch, quality_check_id)

            # 3) Compare-and-swap
            new_version = batch.version + 1
            updated = Batch.objects.filter(
                pk=batch.pk,
                current_stage=current,
                version=batch.version,
            ).update(
                current_stage=target,
                version=F("version") + 1,
                is_complete=graph.is_terminal(target),
                updated_at=timezone.now(),
            )
            if updated != 1:
                raise Conflict(
                    f"Batch {batch.batch_number} changed while the transition was being applied."
                )

            # 4) Audit, same transaction
            detail = {
                "batch_number": batch.batch_number,
                "quality_check_id": check.pk if check else None,
            }
            if notes:
                detail["notes"] = notes

            record_entry(
                actor=actor,
                action=AuditLogEntry.ACTION_STAGE_TRANSITION,
                batch=batch,
                sequence=new_version,
                from_stage=current,
                to_stage=target,
                detail=detail,
            )

            _resolve_open_stage_alerts(batch_id=batch.pk, stage=current)

    except WorkflowError as exc:
        logger.warning(
            "Stage transition rejected (%s): batch=%s actor=%s target=%s: %s",
            exc.kind, batch_id, actor.pk, target, exc.detail,
        )
        raise
    except IntegrityError as exc:
        # Unique (batch, sequence) collision: another transition committed first.
        logger.warning(
            "Stage transition lost a race: batch=%s actor=%s target=%s",
            batch_id, actor.pk, target,
        )
        raise Conflict("Batch was modified concurrently.") from exc
    except DatabaseError as exc:
        logger.exception(
            "Stage transition failed: batch=%s actor=%s target=%s",
            batch_id, actor.pk, target,
        )
        raise Internal("Stage transition could not be applied.") from exc

    logger.info(
        "Batch %s moved %s -> %s by worker %s",
        batch_id, current, target, actor.pk,
    )
    return Batch.objects.get(pk=batch.pk)
