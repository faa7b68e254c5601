# shopfloor_core/tests/conftest.py

from __future__ import annotations

import uuid
from typing import Any, Callable, List, Optional

import pytest
from django.contrib.auth import authenticate, get_user_model
from rest_framework.test import APIClient

from shopfloor_core.models import AuditLogEntry, Batch, BatchOrder, Order, QualityCheck, Worker


def _rand(prefix: str) -> str:
    return f"{prefix}-{uuid.uuid4().hex[:8]}"


class AuthAPIClient(APIClient):
    """
    Test client that uses force_authenticate for predictable DRF auth.
    """

    _user = None

    def login(self, username: str, password: str, **kwargs) -> bool:  # type: ignore[override]
        user = authenticate(username=username, password=password)
        if not user:
            return False
        self.force_authenticate(user=user)
        self._user = user
        return True

    def logout(self) -> None:  # type: ignore[override]
        # DO NOT call force_authenticate(user=None) here.
        # DRF's force_authenticate(user=None) calls self.logout() internally.
        super().logout()
        self.handler._force_user = None
        self.handler._force_token = None
        self._user = None


@pytest.fixture
def api_client() -> AuthAPIClient:
    return AuthAPIClient()


@pytest.fixture
def worker_factory(db) -> Callable[..., Worker]:
    """
    Worker plus a linked auth user whose password is always "pass123".
    """

    def _factory(
        *,
        role: str = Worker.ROLE_WORKER,
        username: Optional[str] = None,
        approval_status: str = Worker.APPROVAL_APPROVED,
        is_active: bool = True,
        with_user: bool = True,
        **extra: Any,
    ) -> Worker:
        user = None
        if with_user:
            User = get_user_model()
            user = User.objects.create_user(
                username=username or _rand(role),
                password="pass123",
            )
        return Worker.objects.create(
            user=user,
            name=extra.pop("name", _rand(role.title())),
            role=role,
            approval_status=approval_status,
            is_active=is_active,
            **extra,
        )

    return _factory


@pytest.fixture
def manager(worker_factory) -> Worker:
    return worker_factory(role=Worker.ROLE_MANAGER, username="manager")


@pytest.fixture
def admin_worker(worker_factory) -> Worker:
    return worker_factory(role=Worker.ROLE_ADMIN, username="admin")


@pytest.fixture
def worker(worker_factory) -> Worker:
    return worker_factory(role=Worker.ROLE_WORKER, username="worker")


@pytest.fixture
def order_factory(db) -> Callable[..., Order]:
    def _factory(**extra: Any) -> Order:
        kwargs = {
            "order_number": _rand("ORD"),
            "customer_name": "Jane Customer",
            "model_name": "Monitor One",
            "wood_type": "walnut",
        }
        kwargs.update(extra)
        return Order.objects.create(**kwargs)

    return _factory


@pytest.fixture
def orders(order_factory) -> List[Order]:
    return [order_factory() for _ in range(2)]


@pytest.fixture
def batch_factory(db, manager, order_factory) -> Callable[..., Batch]:
    """
    Batch with one order and its sequence-0 audit entry, placed at `stage`.

    Starting past intake writes the batch directly (bypassing the stage
    guard) and records a single creation entry at that stage, so replay
    and dwell still see a consistent history.
    """

    def _factory(*, stage: str = "intake", priority: str = Batch.PRIORITY_STANDARD, **extra: Any) -> Batch:
        order = order_factory(status=Order.STATUS_IN_PRODUCTION)
        batch = Batch(
            batch_number=_rand("B"),
            current_stage=stage,
            priority=priority,
            created_by=manager,
            **extra,
        )
        batch.save(_stage_bypass=True)
        BatchOrder.objects.create(batch=batch, order=order, position=0)
        AuditLogEntry.objects.create(
            actor=manager,
            action=AuditLogEntry.ACTION_CREATE_BATCH,
            batch=batch,
            sequence=0,
            to_stage=stage,
            detail={"batch_number": batch.batch_number},
        )
        return batch

    return _factory


@pytest.fixture
def batch(batch_factory) -> Batch:
    return batch_factory()


@pytest.fixture
def check_factory(db, worker) -> Callable[..., QualityCheck]:
    def _factory(*, batch: Batch, outcome: str = QualityCheck.OUTCOME_PASS, stage: Optional[str] = None, **extra: Any) -> QualityCheck:
        return QualityCheck.objects.create(
            batch=batch,
            stage=stage or batch.current_stage,
            outcome=outcome,
            performed_by=worker,
            **extra,
        )

    return _factory
