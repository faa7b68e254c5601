# shopfloor_core/services/batches.py
from __future__ import annotations

import logging
from datetime import date
from typing import Any, Dict, Iterable, List, Optional

from django.db import IntegrityError, transaction
from django.utils import timezone
from rest_framework.exceptions import ValidationError

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, Batch, BatchOrder, Order
from shopfloor_core.permissions import authorize
from shopfloor_core.services.audit import record_entry, replay_stage_history, stage_entries
from shopfloor_core.workflows import MANAGE_ROLES
from shopfloor_core.workflows.errors import Conflict, NotFound
from shopfloor_core.workflows.graph import StageGraph

logger = logging.getLogger(__name__)

# Concurrent creates on the same day can race for the same number
BATCH_NUMBER_ATTEMPTS = 3


def generate_batch_number(today: Optional[date] = None) -> str:
    """
    B<YYYYMMDD>-<NNN>, numbered from today's batch count.
    """
    today = today or timezone.localdate()
    prefix = f"B{today:%Y%m%d}-"

    n = Batch.objects.filter(batch_number__startswith=prefix).count() + 1
    while Batch.objects.filter(batch_number=f"{prefix}{n:03d}").exists():
        n += 1
    return f"{prefix}{n:03d}"


def _create_numbered_batch(**fields) -> Batch:
    """
    Insert a batch under a freshly allocated number, retrying inside a
    savepoint when another create took the number first.
    """
    for attempt in range(1, BATCH_NUMBER_ATTEMPTS + 1):
        number = generate_batch_number()
        try:
            with transaction.atomic():
                return Batch.objects.create(batch_number=number, **fields)
        except IntegrityError:
            logger.warning(
                "Batch number %s already taken (attempt %d of %d)",
                number, attempt, BATCH_NUMBER_ATTEMPTS,
            )

    logger.error("Could not allocate a batch number after %d attempts", BATCH_NUMBER_ATTEMPTS)
    raise Conflict("Could not allocate a batch number. Please retry.")


def _unique_ids(order_ids: Iterable[Any]) -> List[int]:
    out: List[int] = []
    for raw in order_ids or []:
        try:
            oid = int(raw)
        except (TypeError, ValueError):
            raise ValidationError({"order_ids": f"Invalid order id: {raw!r}."})
        if oid not in out:
            out.append(oid)
    return out


def create_batch(
    *,
    order_ids: Iterable[Any],
    acting_worker_id,
    priority: str = Batch.PRIORITY_STANDARD,
    notes: str = "",
) -> Batch:
    actor = authorize(acting_worker_id, MANAGE_ROLES)

    ids = _unique_ids(order_ids)
    if not ids:
        raise ValidationError({"order_ids": "At least one order is required."})

    priority = (priority or Batch.PRIORITY_STANDARD).strip().lower()
    if priority not in dict(Batch.PRIORITY_CHOICES):
        raise ValidationError({"priority": f"Unknown priority: {priority}."})

    graph = load_stage_graph()

    with transaction.atomic():
        orders = {
            o.pk: o
            for o in Order.objects.select_for_update().filter(
                pk__in=ids,
                status=Order.STATUS_PENDING,
            )
        }
        if len(orders) != len(ids):
            raise ValidationError({"order_ids": "Some orders are invalid or not pending."})

        batch = _create_numbered_batch(
            current_stage=graph.initial,
            priority=priority,
            notes=notes or "",
            created_by=actor,
        )
        BatchOrder.objects.bulk_create(
            [BatchOrder(batch=batch, order=orders[oid], position=i) for i, oid in enumerate(ids)]
        )
        Order.objects.filter(pk__in=ids).update(
            status=Order.STATUS_IN_PRODUCTION,
            updated_at=timezone.now(),
        )

        record_entry(
            actor=actor,
            action=AuditLogEntry.ACTION_CREATE_BATCH,
            batch=batch,
            sequence=0,
            to_stage=graph.initial,
            detail={
                "batch_number": batch.batch_number,
                "order_ids": ids,
                "priority": priority,
            },
        )

    logger.info(
        "Created batch %s with %d order(s) by worker %s",
        batch.batch_number, len(ids), actor.pk,
    )
    return batch


def production_pipeline(graph: Optional[StageGraph] = None) -> List[Dict[str, Any]]:
    """
    Incomplete batches grouped by stage in graph order; each group sorted
    urgent first, then oldest first.
    """
    graph = graph or load_stage_graph()

    by_stage: Dict[str, List[Batch]] = {code: [] for code in graph.stage_codes}
    for batch in Batch.objects.filter(is_complete=False).prefetch_related("batch_orders"):
        by_stage.setdefault(batch.current_stage, []).append(batch)

    out: List[Dict[str, Any]] = []
    for code, batches in by_stage.items():
        known = graph.has_stage(code)
        if known and graph.is_terminal(code):
            continue
        batches.sort(key=lambda b: (Batch.PRIORITY_RANK.get(b.priority, 99), b.created_at, b.pk))
        out.append(
            {
                "stage": code,
                "name": graph.stage(code).name if known else code,
                "batches": batches,
            }
        )
    return out


def get_batch(batch_id) -> Batch:
    try:
        return Batch.objects.get(pk=batch_id)
    except (Batch.DoesNotExist, ValueError, TypeError):
        raise NotFound(f"Batch {batch_id} not found.")


def stage_history(batch_id) -> Dict[str, Any]:
    batch = get_batch(batch_id)
    entries = stage_entries(batch.pk)
    return {
        "batch": batch,
        "entries": entries,
        "replayed_stages": replay_stage_history(entries),
    }
