# shopfloor_core/services/assignments.py
from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from django.db import IntegrityError, transaction
from django.db.models import Count, Q
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, StageAssignment, Worker, WorkerNotification
from shopfloor_core.permissions import authorize, require_role
from shopfloor_core.services.audit import record_entry
from shopfloor_core.services.batches import get_batch
from shopfloor_core.services.notifications import notify, notify_best_effort
from shopfloor_core.workflows import MANAGE_ROLES, normalize_stage
from shopfloor_core.workflows.errors import (
    AssignmentConflict,
    InactiveWorker,
    NotFound,
    UnknownStage,
)

logger = logging.getLogger(__name__)

# Workers with this many open assignments are skipped by auto-assignment
MAX_OPEN_ASSIGNMENTS = 3

# Quality rate assumed for workers with no completed assignments yet
DEFAULT_QUALITY_RATE = 0.8


def assign(
    *,
    batch_id,
    worker_id,
    stage: str,
    acting_worker_id,
    notes: str = "",
) -> StageAssignment:
    actor = authorize(acting_worker_id, MANAGE_ROLES)
    graph = load_stage_graph()

    code = normalize_stage(stage)
    if not graph.has_stage(code):
        raise UnknownStage(f"Unknown stage: {stage}.")

    batch = get_batch(batch_id)

    try:
        worker = Worker.objects.filter(pk=worker_id).first()
    except (TypeError, ValueError):
        worker = None
    if worker is None:
        raise NotFound(f"Worker {worker_id} not found.")
    if not worker.is_active or not worker.is_approved:
        raise InactiveWorker(f"Worker {worker.name} is not active.")

    try:
        with transaction.atomic():
            if StageAssignment.objects.filter(
                batch=batch,
                stage=code,
                completed_at__isnull=True,
            ).exists():
                raise AssignmentConflict(
                    f"Batch {batch.batch_number} already has an open assignment for {code}."
                )

            assignment = StageAssignment.objects.create(
                worker=worker,
                batch=batch,
                stage=code,
                assigned_by=actor,
                notes=notes or "",
            )
            record_entry(
                actor=actor,
                action=AuditLogEntry.ACTION_ASSIGN_WORKER,
                batch=batch,
                detail={
                    "assignment_id": assignment.pk,
                    "worker_id": worker.pk,
                    "stage": code,
                },
            )
    except IntegrityError:
        # Partial unique index caught a concurrent assign for the same (batch, stage)
        raise AssignmentConflict(
            f"Batch {batch.batch_number} already has an open assignment for {code}."
        )

    logger.info(
        "Assigned worker %s to batch %s at %s (by %s)",
        worker.pk, batch.batch_number, code, actor.pk,
    )

    notify_best_effort(
        notify,
        worker=worker,
        kind=WorkerNotification.KIND_ASSIGNMENT,
        title="New Assignment",
        message=f"You have been assigned to {graph.stage(code).name} for batch {batch.batch_number}.",
        data={"assignment_id": assignment.pk, "batch_id": batch.pk, "stage": code},
    )
    return assignment


def _own_assignment(assignment_id, worker: Worker, *, lock: bool = False) -> StageAssignment:
    qs = StageAssignment.objects.select_related("batch")
    if lock:
        qs = qs.select_for_update()
    try:
        assignment = qs.filter(pk=assignment_id, worker=worker).first()
    except (TypeError, ValueError):
        assignment = None
    if assignment is None:
        raise NotFound("Assignment not found.")
    return assignment


def start(*, assignment_id, worker_id) -> StageAssignment:
    worker = authorize(worker_id)

    with transaction.atomic():
        assignment = _own_assignment(assignment_id, worker, lock=True)
        if assignment.completed_at is not None:
            raise AssignmentConflict("Assignment is already completed.")

        if assignment.started_at is None:
            assignment.started_at = timezone.now()
            assignment.save(update_fields=["started_at"])

    return assignment


def complete(
    *,
    assignment_id,
    worker_id,
    quality_status: str,
    time_spent_minutes: Optional[int] = None,
    notes: str = "",
) -> StageAssignment:
    """
    Close the caller's own assignment. The achievement notification is a
    side channel: its failure is logged and never fails the completion.
    """
    worker = authorize(worker_id)

    status = (quality_status or "").strip().lower()
    if status not in dict(StageAssignment.QUALITY_CHOICES):
        raise ValidationError({"quality_status": f"Unknown quality status: {quality_status}."})

    if time_spent_minutes is not None:
        try:
            time_spent_minutes = int(time_spent_minutes)
        except (TypeError, ValueError):
            raise ValidationError({"time_spent_minutes": "Must be a whole number of minutes."})
        if time_spent_minutes < 0:
            raise ValidationError({"time_spent_minutes": "Must not be negative."})

    with transaction.atomic():
        assignment = _own_assignment(assignment_id, worker, lock=True)
        if assignment.completed_at is not None:
            raise AssignmentConflict("Assignment is already completed.")

        now = timezone.now()
        if time_spent_minutes is None and assignment.started_at is not None:
            time_spent_minutes = max(0, int((now - assignment.started_at).total_seconds() // 60))

        assignment.completed_at = now
        assignment.quality_status = status
        assignment.time_spent_minutes = time_spent_minutes
        if notes:
            assignment.notes = notes
        assignment.save(
            update_fields=["completed_at", "quality_status", "time_spent_minutes", "notes"]
        )

    logger.info(
        "Worker %s completed assignment %s (%s)",
        worker.pk, assignment.pk, status,
    )

    notify_best_effort(
        notify,
        worker=worker,
        kind=WorkerNotification.KIND_ACHIEVEMENT,
        title="Task Completed!",
        message=f"Great job completing {assignment.stage} for batch {assignment.batch.batch_number}!",
        data={
            "assignment_id": assignment.pk,
            "batch_id": assignment.batch_id,
            "stage": assignment.stage,
            "quality_status": status,
        },
    )
    return assignment


# ===============================================================
# Recommendations and auto-assignment
# ===============================================================

def _candidates():
    return Worker.objects.filter(
        is_active=True,
        approval_status=Worker.APPROVAL_APPROVED,
    ).annotate(
        open_count=Count("assignments", filter=Q(assignments__completed_at__isnull=True)),
        completed_count=Count("assignments", filter=Q(assignments__completed_at__isnull=False)),
        good_count=Count(
            "assignments",
            filter=Q(
                assignments__completed_at__isnull=False,
                assignments__quality_status=StageAssignment.QUALITY_GOOD,
            ),
        ),
    )


def score_worker(worker: Worker, stage: str) -> Dict[str, Any]:
    """
    Score one annotated candidate for `stage`.

    Specialization counts most, then a light workload, then the share of
    completed assignments closed with a good quality status.
    """
    specialized = stage in {normalize_stage(s) for s in (worker.specializations or [])}
    open_count = worker.open_count

    if worker.completed_count:
        quality_rate = worker.good_count / worker.completed_count
    else:
        quality_rate = DEFAULT_QUALITY_RATE

    score = 0
    if specialized:
        score += 50
    if open_count < 2:
        score += 30
    if open_count < 1:
        score += 20
    score += round(quality_rate * 50)

    return {
        "worker": worker,
        "score": score,
        "has_specialization": specialized,
        "open_assignments": open_count,
        "quality_rate": round(quality_rate, 2),
    }


def _ranked(code: str) -> List[Dict[str, Any]]:
    ranked = [score_worker(w, code) for w in _candidates()]
    ranked.sort(key=lambda r: (-r["score"], r["worker"].name, r["worker"].pk))
    return ranked


def recommend_workers(*, stage: str, acting_worker_id, limit: int = 5) -> List[Dict[str, Any]]:
    authorize(acting_worker_id, MANAGE_ROLES)

    code = normalize_stage(stage)
    if not load_stage_graph().has_stage(code):
        raise UnknownStage(f"Unknown stage: {stage}.")

    return _ranked(code)[:max(0, limit)]


def auto_assign(*, batch_id, acting_worker_id) -> Dict[str, Optional[StageAssignment]]:
    """
    Assign the best available worker to every remaining stage of a batch.

    Covers the current stage and the stages after it in graph order,
    terminal stages excluded. Stages that already have an open assignment
    are left alone. A stage gets None when every candidate already holds
    MAX_OPEN_ASSIGNMENTS open assignments.
    """
    actor = authorize(acting_worker_id, MANAGE_ROLES)
    graph = load_stage_graph()
    batch = get_batch(batch_id)

    codes = graph.stage_codes
    if batch.current_stage in codes:
        codes = codes[codes.index(batch.current_stage):]
    codes = [c for c in codes if not graph.is_terminal(c)]

    taken = set(
        StageAssignment.objects.filter(batch=batch, completed_at__isnull=True)
        .values_list("stage", flat=True)
    )

    result: Dict[str, Optional[StageAssignment]] = {}
    for code in codes:
        if code in taken:
            continue

        best = next(
            (r for r in _ranked(code) if r["open_assignments"] < MAX_OPEN_ASSIGNMENTS),
            None,
        )
        if best is None:
            logger.warning(
                "No available worker for batch %s at %s",
                batch.batch_number, code,
            )
            result[code] = None
            continue

        result[code] = assign(
            batch_id=batch.pk,
            worker_id=best["worker"].pk,
            stage=code,
            acting_worker_id=actor.pk,
            notes="Auto-assigned",
        )

    logger.info(
        "Auto-assigned batch %s: %d of %d stage(s) filled (by %s)",
        batch.batch_number,
        sum(1 for a in result.values() if a is not None),
        len(result),
        actor.pk,
    )
    return result


# ===============================================================
# Per-worker summary
# ===============================================================

def worker_assignments(*, worker_id, acting_worker_id) -> Dict[str, Any]:
    """
    Open and completed assignments of one worker with completion stats.

    Workers may only read their own summary; managers may read anyone's.
    """
    actor = authorize(acting_worker_id)
    if str(worker_id) != str(actor.pk):
        require_role(actor, MANAGE_ROLES)

    try:
        worker = Worker.objects.filter(pk=worker_id).first()
    except (TypeError, ValueError):
        worker = None
    if worker is None:
        raise NotFound(f"Worker {worker_id} not found.")

    qs = StageAssignment.objects.filter(worker=worker).select_related("batch", "worker", "assigned_by")
    active = list(qs.filter(completed_at__isnull=True))
    completed = list(qs.filter(completed_at__isnull=False))

    timed = [a for a in completed if a.started_at is not None]
    if timed:
        total = sum((a.completed_at - a.started_at).total_seconds() / 60 for a in timed)
        average = round(total / len(timed))
    else:
        average = 0

    return {
        "worker": worker,
        "active": active,
        "completed": completed,
        "stats": {
            "total_completed": len(completed),
            "average_minutes": average,
        },
    }
