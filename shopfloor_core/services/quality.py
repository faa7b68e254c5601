# shopfloor_core/services/quality.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.db import transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, Batch, QualityCheck, WorkerNotification
from shopfloor_core.permissions import authorize
from shopfloor_core.services.audit import record_entry
from shopfloor_core.services.batches import get_batch
from shopfloor_core.services.notifications import notify_best_effort, notify_roles
from shopfloor_core.workflows import MANAGE_ROLES, normalize_stage
from shopfloor_core.workflows.errors import Conflict, NotFound, UnknownStage
from shopfloor_core.workflows.graph import StageGraph

logger = logging.getLogger(__name__)


def checklist_for_stage(stage: str, graph: Optional[StageGraph] = None) -> List[Dict[str, Any]]:
    graph = graph or load_stage_graph()
    if not graph.has_stage(stage):
        raise UnknownStage(f"Unknown stage: {stage}.")
    return [dict(item) for item in graph.stage(stage).checklist]


def record_check(
    *,
    batch_id,
    outcome: str,
    acting_worker_id,
    stage: Optional[str] = None,
    checklist_data: Optional[Dict[str, Any]] = None,
    photos: Optional[List[str]] = None,
    notes: str = "",
) -> QualityCheck:
    """
    Record a quality check. Defaults to the batch's current stage.
    A fail/hold outcome puts the batch's quality status on that outcome.
    """
    worker = authorize(acting_worker_id)
    graph = load_stage_graph()

    outcome = (outcome or "").strip().lower()
    if outcome not in dict(QualityCheck.OUTCOME_CHOICES):
        raise ValidationError({"outcome": f"Unknown outcome: {outcome}."})

    batch = get_batch(batch_id)
    code = normalize_stage(stage) if stage else batch.current_stage
    if not graph.has_stage(code):
        raise UnknownStage(f"Unknown stage: {stage}.")

    with transaction.atomic():
        check = QualityCheck.objects.create(
            batch=batch,
            stage=code,
            outcome=outcome,
            checklist_data=checklist_data or {},
            photos=list(photos or []),
            notes=notes or "",
            performed_by=worker,
        )

        if outcome in (QualityCheck.OUTCOME_FAIL, QualityCheck.OUTCOME_HOLD):
            Batch.objects.filter(pk=batch.pk).update(
                quality_status=outcome,
                updated_at=timezone.now(),
            )

        record_entry(
            actor=worker,
            action=AuditLogEntry.ACTION_QUALITY_CHECK,
            context="quality",
            batch=batch,
            detail={"quality_check_id": check.pk, "stage": code, "outcome": outcome},
        )

    logger.info(
        "Quality check %s for batch %s at %s: %s",
        check.pk, batch.batch_number, code, outcome,
    )

    if outcome != QualityCheck.OUTCOME_PASS:
        notify_best_effort(
            notify_roles,
            roles=MANAGE_ROLES,
            kind=WorkerNotification.KIND_QUALITY,
            title=f"Quality {outcome} on batch {batch.batch_number}",
            message=notes or f"{graph.stage(code).name} check recorded as {outcome}.",
            data={"quality_check_id": check.pk, "batch_id": batch.pk, "stage": code},
        )
    return check


def resolve(*, check_id, resolution_notes: str, resolver_id) -> QualityCheck:
    """
    Mark a failing or held check resolved.

    Never moves the batch: it only makes a later transition eligible to pass
    its quality gate. When the batch has no unresolved failing checks left,
    its quality status returns to good.
    """
    resolver = authorize(resolver_id)

    notes = (resolution_notes or "").strip()
    if not notes:
        raise ValidationError({"resolution_notes": "Resolution notes are required."})

    with transaction.atomic():
        try:
            check = (
                QualityCheck.objects.select_for_update()
                .select_related("batch")
                .filter(pk=check_id)
                .first()
            )
        except (TypeError, ValueError):
            check = None
        if check is None:
            raise NotFound(f"Quality check {check_id} not found.")

        if check.outcome == QualityCheck.OUTCOME_PASS:
            raise ValidationError({"outcome": "A passing check has nothing to resolve."})
        if check.is_resolved:
            raise Conflict(f"Quality check {check.pk} is already resolved.")

        check.resolution_notes = notes
        check.resolved_by = resolver
        check.resolved_at = timezone.now()
        check.save(update_fields=["resolution_notes", "resolved_by", "resolved_at"])

        still_open = QualityCheck.objects.filter(
            batch_id=check.batch_id,
            outcome__in=[QualityCheck.OUTCOME_FAIL, QualityCheck.OUTCOME_HOLD],
            resolved_at__isnull=True,
        ).exists()
        if not still_open:
            Batch.objects.filter(pk=check.batch_id).update(
                quality_status=Batch.QUALITY_GOOD,
                updated_at=timezone.now(),
            )

        record_entry(
            actor=resolver,
            action=AuditLogEntry.ACTION_RESOLVE_QUALITY_CHECK,
            context="quality",
            batch=check.batch,
            detail={"quality_check_id": check.pk, "stage": check.stage},
        )

    logger.info("Quality check %s resolved by worker %s", check.pk, resolver.pk)
    return check
