# shopfloor_core/workflows/sla_scanner.py
from __future__ import annotations

import logging
from typing import Any, Dict, Optional, Tuple

from django.db import transaction
from django.utils import timezone

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, Batch, StageAlert, WorkerNotification
from shopfloor_core.services.notifications import notify_best_effort, notify_roles
from shopfloor_core.workflows import MANAGE_ROLES
from shopfloor_core.workflows.graph import StageGraph
from shopfloor_core.workflows.sla import (
    DWELL_BREACH,
    DWELL_WARNING,
    evaluate_dwell,
    get_thresholds,
    threshold_for,
)

logger = logging.getLogger(__name__)


def _stage_window_start(batch: Batch) -> Tuple[Any, int]:
    """
    When the batch entered its current stage, and the audit sequence of that
    entry. The audit log is the single source of truth; batches without
    history fall back to their creation time.
    """
    entry = (
        AuditLogEntry.objects.filter(batch=batch, sequence__isnull=False)
        .order_by("-sequence")
        .first()
    )
    if entry is not None:
        return entry.created_at, entry.sequence
    return batch.created_at, batch.version


def stage_dwell(batch: Batch, *, now=None, graph: Optional[StageGraph] = None) -> Dict[str, Any]:
    now = now or timezone.now()
    graph = graph or load_stage_graph()

    entered_at, sequence = _stage_window_start(batch)
    age = now - entered_at

    out: Dict[str, Any] = {
        "batch_id": batch.pk,
        "stage": batch.current_stage,
        "entered_at": entered_at,
        "entered_sequence": sequence,
        "dwell_seconds": max(0, int(age.total_seconds())),
        "status": "n/a",
        "warn_after_seconds": None,
        "breach_after_seconds": None,
    }

    if batch.is_complete or not graph.has_stage(batch.current_stage):
        return out

    stage = graph.stage(batch.current_stage)
    thresholds = get_thresholds(stage) or {}
    if thresholds.get("warn_after") is not None:
        out["warn_after_seconds"] = int(thresholds["warn_after"].total_seconds())
    if thresholds.get("breach_after") is not None:
        out["breach_after_seconds"] = int(thresholds["breach_after"].total_seconds())
    out["status"] = evaluate_dwell(stage, age)
    return out


def scan_stalled_batches(*, now=None) -> int:
    """
    Raise a StageAlert for every incomplete batch past a dwell threshold in
    its current stage visit. Idempotent: an alert exists at most once per
    (batch, visit, severity).

    Returns:
        int: number of newly created alerts
    """
    now = now or timezone.now()
    graph = load_stage_graph()
    created_count = 0

    for batch in Batch.objects.filter(is_complete=False).iterator():
        dwell = stage_dwell(batch, now=now, graph=graph)
        status = dwell["status"]
        if status not in (DWELL_WARNING, DWELL_BREACH):
            continue

        stage = graph.stage(batch.current_stage)
        threshold = threshold_for(stage, status)

        with transaction.atomic():
            alert, created = StageAlert.objects.get_or_create(
                batch=batch,
                entered_sequence=dwell["entered_sequence"],
                severity=status,
                defaults={
                    "stage": batch.current_stage,
                    "threshold_seconds": int(threshold.total_seconds()),
                    "dwell_seconds": dwell["dwell_seconds"],
                    "triggered_at": now,
                },
            )

        if not created:
            continue

        created_count += 1
        hours = dwell["dwell_seconds"] // 3600
        logger.warning(
            "Batch %s stalled in %s for %sh (%s)",
            batch.batch_number, batch.current_stage, hours, status,
        )
        notify_best_effort(
            notify_roles,
            roles=MANAGE_ROLES,
            kind=WorkerNotification.KIND_STALL,
            title=f"Batch {batch.batch_number} stalled",
            message=f"{stage.name}: {hours}h in stage ({status}).",
            data={"batch_id": batch.pk, "stage": batch.current_stage, "alert_id": alert.pk},
        )

    return created_count
