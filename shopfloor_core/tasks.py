# shopfloor_core/tasks.py
from __future__ import annotations

from celery import shared_task

from shopfloor_core.workflows.sla_scanner import scan_stalled_batches as _scan


@shared_task
def scan_stalled_batches() -> int:
    return _scan()
