from collections import defaultdict
from datetime import timedelta
from typing import Any, Dict, List, Optional

from django.utils.timezone import now

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.models import AuditLogEntry, Batch
from shopfloor_core.workflows.graph import StageGraph


def compute_time_in_stages(*, batch_id: int) -> Dict[str, timedelta]:
    """
    Returns time spent in each stage, from the batch's audit history.

    Example output:
    {
        "intake": timedelta(hours=2),
        "sanding": timedelta(days=1),
    }
    """
    entries = list(
        AuditLogEntry.objects
        .filter(batch_id=batch_id, sequence__isnull=False)
        .order_by("sequence")
    )

    durations: Dict[str, timedelta] = {}

    for i, current in enumerate(entries):
        start = current.created_at

        if i + 1 < len(entries):
            end = entries[i + 1].created_at
        else:
            end = now()

        durations[current.to_stage] = (
            durations.get(current.to_stage, timedelta()) + (end - start)
        )

    return durations


def compute_total_cycle_time(*, batch_id: int) -> timedelta:
    """
    Total time from batch creation to its latest stage change.
    """
    qs = AuditLogEntry.objects.filter(
        batch_id=batch_id,
        sequence__isnull=False,
    ).order_by("sequence")

    first = qs.first()
    last = qs.last()

    if not first:
        return timedelta()

    return last.created_at - first.created_at


def _status_for(avg: timedelta, warn: Optional[timedelta], breach: Optional[timedelta]) -> str:
    if breach is not None and avg >= breach:
        return "critical"
    if warn is not None and avg >= warn:
        return "warning"
    return "ok"


def stage_bottlenecks(*, since, graph: Optional[StageGraph] = None) -> List[Dict[str, Any]]:
    """
    Mean dwell per stage over completed stage visits that began after `since`.

    A visit starts at a stage-bearing audit entry and ends at the batch's
    next one. Terminal stages are skipped.
    """
    graph = graph or load_stage_graph()

    entries = (
        AuditLogEntry.objects
        .filter(batch__isnull=False, sequence__isnull=False, created_at__gte=since)
        .order_by("batch_id", "sequence")
        .values("batch_id", "sequence", "to_stage", "created_at")
    )

    totals: Dict[str, timedelta] = defaultdict(timedelta)
    counts: Dict[str, int] = defaultdict(int)

    prev = None
    for e in entries:
        if (
            prev is not None
            and prev["batch_id"] == e["batch_id"]
            and e["sequence"] == prev["sequence"] + 1
        ):
            totals[prev["to_stage"]] += e["created_at"] - prev["created_at"]
            counts[prev["to_stage"]] += 1
        prev = e

    wip: Dict[str, int] = defaultdict(int)
    for stage_code in Batch.objects.filter(is_complete=False).values_list("current_stage", flat=True):
        wip[stage_code] += 1

    out: List[Dict[str, Any]] = []
    for code in graph.stage_codes:
        stage = graph.stage(code)
        if stage.terminal:
            continue

        visits = counts.get(code, 0)
        avg = totals[code] / visits if visits else timedelta()
        out.append(
            {
                "stage": code,
                "name": stage.name,
                "completed_visits": visits,
                "avg_hours": round(avg.total_seconds() / 3600, 2),
                "in_progress": wip.get(code, 0),
                "status": _status_for(avg, stage.warn_after, stage.breach_after) if visits else "ok",
            }
        )

    return out
