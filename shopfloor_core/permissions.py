# shopfloor_core/permissions.py
from __future__ import annotations

from typing import Iterable, Optional

from rest_framework.permissions import BasePermission, SAFE_METHODS

from .models import Worker
from .workflows import MANAGE_ROLES, normalize_role, role_allows
from .workflows.errors import Forbidden, Unauthorized


# ------------------------------------------------------------------
# Identity resolution
# ------------------------------------------------------------------
def _check_standing(worker: Worker) -> Worker:
    if not worker.is_active:
        raise Forbidden("Worker account is inactive.")
    if not worker.is_approved:
        raise Forbidden("Worker account is not approved.")
    return worker


def resolve_worker(user) -> Worker:
    """
    Map an authenticated auth user to its Worker profile.

    401 when there is no identity, 403 when the identity has no usable
    worker profile.
    """
    if not user or not getattr(user, "is_authenticated", False):
        raise Unauthorized("Authentication credentials were not provided.")

    worker = Worker.objects.filter(user=user).first()
    if worker is None:
        raise Forbidden("No worker profile is linked to this account.")
    return _check_standing(worker)


def resolve_worker_by_id(worker_id) -> Worker:
    if worker_id in (None, ""):
        raise Unauthorized("No acting worker identity was provided.")
    try:
        worker = Worker.objects.filter(pk=worker_id).first()
    except (TypeError, ValueError):
        worker = None
    if worker is None:
        raise Unauthorized(f"Unknown worker: {worker_id}.")
    return _check_standing(worker)


# ------------------------------------------------------------------
# Capability check (the only role gate in the codebase)
# ------------------------------------------------------------------
def require_role(worker: Worker, allowed: Optional[Iterable[str]] = None) -> Worker:
    allowed_set = frozenset(allowed) if allowed is not None else None
    if not role_allows(worker.role, allowed_set):
        needed = ", ".join(sorted(allowed_set or ()))
        raise Forbidden(
            f"Role '{normalize_role(worker.role)}' cannot perform this operation"
            + (f" (requires one of: {needed})." if needed else ".")
        )
    return worker


def authorize(worker_id, allowed: Optional[Iterable[str]] = None) -> Worker:
    """
    Resolve the acting worker by id and check it holds one of `allowed`.
    allowed=None accepts any active, approved worker.
    """
    return require_role(resolve_worker_by_id(worker_id), allowed)


# ------------------------------------------------------------------
# Permission classes
# ------------------------------------------------------------------
class IsActiveWorker(BasePermission):
    """
    Any approved, active worker. Failures raise typed errors so the
    response carries the right kind.
    """

    def has_permission(self, request, view):
        resolve_worker(getattr(request, "user", None))
        return True


class IsManagerOrReadOnly(BasePermission):
    """
    Read: any active worker
    Write: manager or admin
    """

    def has_permission(self, request, view):
        worker = resolve_worker(getattr(request, "user", None))
        if request.method in SAFE_METHODS:
            return True
        require_role(worker, MANAGE_ROLES)
        return True
