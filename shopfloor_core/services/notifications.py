# shopfloor_core/services/notifications.py
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional

from django.db import transaction
from django.utils import timezone

from shopfloor_core.models import Worker, WorkerNotification
from shopfloor_core.permissions import authorize
from shopfloor_core.workflows import normalize_role
from shopfloor_core.workflows.errors import NotFound

logger = logging.getLogger(__name__)


def notify(
    *,
    worker: Worker,
    kind: str,
    title: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
) -> WorkerNotification:
    return WorkerNotification.objects.create(
        worker=worker,
        kind=kind,
        title=title,
        message=message,
        data=data or {},
    )


def notify_roles(
    *,
    roles: Iterable[str],
    kind: str,
    title: str,
    message: str = "",
    data: Optional[Dict[str, Any]] = None,
) -> int:
    wanted = {normalize_role(r) for r in roles}
    recipients = Worker.objects.filter(
        role__in=wanted,
        is_active=True,
        approval_status=Worker.APPROVAL_APPROVED,
    )
    rows = [
        WorkerNotification(worker=w, kind=kind, title=title, message=message, data=data or {})
        for w in recipients
    ]
    WorkerNotification.objects.bulk_create(rows)
    return len(rows)


def notify_best_effort(send, **kwargs) -> bool:
    """
    Run a notification call without letting its failure reach the caller.

    The call runs in a savepoint so a failed insert cannot poison an
    enclosing transaction.
    """
    try:
        with transaction.atomic():
            send(**kwargs)
        return True
    except Exception:
        logger.exception("Notification delivery failed: %s", kwargs.get("title"))
        return False


def mark_read(*, notification_id, worker_id) -> WorkerNotification:
    worker = authorize(worker_id)
    note = WorkerNotification.objects.filter(pk=notification_id, worker=worker).first()
    if note is None:
        raise NotFound("Notification not found.")

    if not note.is_read:
        note.is_read = True
        note.read_at = timezone.now()
        note.save(update_fields=["is_read", "read_at"])
    return note


def mark_all_read(*, worker_id) -> int:
    worker = authorize(worker_id)
    return WorkerNotification.objects.filter(worker=worker, is_read=False).update(
        is_read=True,
        read_at=timezone.now(),
    )
