# shopfloor_core/tests/test_assignments.py

import logging
from datetime import timedelta

import pytest
from django.utils import timezone

from shopfloor_core.models import AuditLogEntry, StageAssignment, Worker, WorkerNotification
from shopfloor_core.services import assignments
from shopfloor_core.workflows.errors import (
    AssignmentConflict,
    Forbidden,
    InactiveWorker,
    NotFound,
    UnknownStage,
)


@pytest.mark.django_db
def test_assign_creates_open_assignment_audit_and_notification(manager, worker, batch):
    assignment = assignments.assign(
        batch_id=batch.pk,
        worker_id=worker.pk,
        stage="Intake",
        acting_worker_id=manager.pk,
        notes="Start with the left cabinet",
    )

    assert assignment.stage == "intake"
    assert assignment.is_open
    assert assignment.assigned_by_id == manager.pk

    entry = AuditLogEntry.objects.get(batch=batch, action=AuditLogEntry.ACTION_ASSIGN_WORKER)
    assert entry.sequence is None
    assert entry.detail["worker_id"] == worker.pk

    note = WorkerNotification.objects.get(worker=worker)
    assert note.kind == WorkerNotification.KIND_ASSIGNMENT
    assert note.title == "New Assignment"
    assert batch.batch_number in note.message


@pytest.mark.django_db
def test_second_open_assignment_for_same_stage_conflicts(manager, worker, worker_factory, batch):
    other = worker_factory()
    assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)

    with pytest.raises(AssignmentConflict):
        assignments.assign(batch_id=batch.pk, worker_id=other.pk, stage="intake", acting_worker_id=manager.pk)

    assert StageAssignment.objects.filter(batch=batch, stage="intake").count() == 1


@pytest.mark.django_db
def test_same_batch_other_stage_is_not_a_conflict(manager, worker, batch):
    assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="sanding", acting_worker_id=manager.pk)
    assert StageAssignment.objects.filter(batch=batch).count() == 2


@pytest.mark.django_db
def test_stage_can_be_reassigned_after_completion(manager, worker, worker_factory, batch):
    first = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    assignments.complete(assignment_id=first.pk, worker_id=worker.pk, quality_status="good")

    other = worker_factory()
    second = assignments.assign(batch_id=batch.pk, worker_id=other.pk, stage="intake", acting_worker_id=manager.pk)
    assert second.pk != first.pk


@pytest.mark.django_db
def test_assign_validates_stage_batch_and_worker(manager, worker, worker_factory, batch):
    with pytest.raises(UnknownStage):
        assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="painting", acting_worker_id=manager.pk)

    with pytest.raises(NotFound):
        assignments.assign(batch_id=777777, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)

    with pytest.raises(NotFound):
        assignments.assign(batch_id=batch.pk, worker_id=777777, stage="intake", acting_worker_id=manager.pk)

    inactive = worker_factory(is_active=False)
    with pytest.raises(InactiveWorker):
        assignments.assign(batch_id=batch.pk, worker_id=inactive.pk, stage="intake", acting_worker_id=manager.pk)

    pending = worker_factory(approval_status=Worker.APPROVAL_PENDING)
    with pytest.raises(InactiveWorker):
        assignments.assign(batch_id=batch.pk, worker_id=pending.pk, stage="intake", acting_worker_id=manager.pk)

    assert StageAssignment.objects.count() == 0


@pytest.mark.django_db
def test_workers_cannot_assign(worker, batch):
    with pytest.raises(Forbidden):
        assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=worker.pk)


# ===============================================================
# Start / complete
# ===============================================================

@pytest.mark.django_db
def test_start_then_complete(manager, worker, batch):
    assignment = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)

    started = assignments.start(assignment_id=assignment.pk, worker_id=worker.pk)
    assert started.started_at is not None

    done = assignments.complete(
        assignment_id=assignment.pk,
        worker_id=worker.pk,
        quality_status="warning",
        notes="Small knot on the side panel",
    )
    assert done.completed_at is not None
    assert done.quality_status == StageAssignment.QUALITY_WARNING
    assert done.time_spent_minutes == 0
    assert done.notes == "Small knot on the side panel"

    titles = set(WorkerNotification.objects.filter(worker=worker).values_list("title", flat=True))
    assert titles == {"New Assignment", "Task Completed!"}


@pytest.mark.django_db
def test_complete_keeps_reported_minutes(manager, worker, batch):
    assignment = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    done = assignments.complete(
        assignment_id=assignment.pk,
        worker_id=worker.pk,
        quality_status="good",
        time_spent_minutes=45,
    )
    assert done.time_spent_minutes == 45


@pytest.mark.django_db
def test_completing_twice_conflicts(manager, worker, batch):
    assignment = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    assignments.complete(assignment_id=assignment.pk, worker_id=worker.pk, quality_status="good")

    with pytest.raises(AssignmentConflict):
        assignments.complete(assignment_id=assignment.pk, worker_id=worker.pk, quality_status="good")
    with pytest.raises(AssignmentConflict):
        assignments.start(assignment_id=assignment.pk, worker_id=worker.pk)


@pytest.mark.django_db
def test_cannot_complete_someone_elses_assignment(manager, worker, worker_factory, batch):
    assignment = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    other = worker_factory()

    with pytest.raises(NotFound):
        assignments.complete(assignment_id=assignment.pk, worker_id=other.pk, quality_status="good")

    assignment.refresh_from_db()
    assert assignment.completed_at is None


@pytest.mark.django_db
def test_notification_failure_does_not_fail_completion(manager, worker, batch, monkeypatch, caplog):
    assignment = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)

    def _boom(**kwargs):
        raise RuntimeError("notification store unavailable")

    monkeypatch.setattr(assignments, "notify", _boom)

    with caplog.at_level(logging.ERROR, logger="shopfloor_core.services.notifications"):
        done = assignments.complete(assignment_id=assignment.pk, worker_id=worker.pk, quality_status="good")

    assert done.completed_at is not None
    assignment.refresh_from_db()
    assert assignment.completed_at is not None
    assert not WorkerNotification.objects.filter(worker=worker, title="Task Completed!").exists()
    assert "Notification delivery failed" in caplog.text


# ===============================================================
# Recommendations / auto-assignment
# ===============================================================

@pytest.mark.django_db
def test_recommendations_rank_specialists_first(manager, worker, worker_factory):
    sander = worker_factory(name="Sander", specializations=["Sanding"])
    worker_factory(name="Pending", specializations=["sanding"], approval_status=Worker.APPROVAL_PENDING)
    worker_factory(name="Gone", specializations=["sanding"], is_active=False)

    ranked = assignments.recommend_workers(stage="sanding", acting_worker_id=manager.pk)

    assert ranked[0]["worker"] == sander
    assert ranked[0]["has_specialization"] is True
    assert ranked[0]["score"] == 140
    assert {r["worker"].name for r in ranked}.isdisjoint({"Pending", "Gone"})
    assert all(r["score"] == 90 for r in ranked[1:])

    assert len(assignments.recommend_workers(stage="sanding", acting_worker_id=manager.pk, limit=1)) == 1


@pytest.mark.django_db
def test_recommendations_weigh_workload_and_quality(manager, worker_factory, batch_factory):
    careful = worker_factory(name="Careful")
    sloppy = worker_factory(name="Sloppy")
    busy = worker_factory(name="Busy")
    batch = batch_factory()

    for person, status in ((careful, "good"), (sloppy, "critical")):
        done = assignments.assign(batch_id=batch.pk, worker_id=person.pk, stage="intake", acting_worker_id=manager.pk)
        assignments.complete(assignment_id=done.pk, worker_id=person.pk, quality_status=status)

    for stage in ("sanding", "finishing"):
        assignments.assign(batch_id=batch.pk, worker_id=busy.pk, stage=stage, acting_worker_id=manager.pk)

    scores = {
        r["worker"].name: r
        for r in assignments.recommend_workers(stage="packaging", acting_worker_id=manager.pk, limit=10)
    }
    assert scores["Careful"]["score"] == 100
    assert scores["Careful"]["quality_rate"] == 1.0
    assert scores["Sloppy"]["score"] == 50
    assert scores["Busy"]["open_assignments"] == 2
    assert scores["Busy"]["score"] == 40


@pytest.mark.django_db
def test_recommendations_validate_stage_and_role(manager, worker):
    with pytest.raises(UnknownStage):
        assignments.recommend_workers(stage="painting", acting_worker_id=manager.pk)
    with pytest.raises(Forbidden):
        assignments.recommend_workers(stage="sanding", acting_worker_id=worker.pk)


@pytest.mark.django_db
def test_auto_assign_fills_remaining_stages(manager, worker_factory, batch_factory):
    tester = worker_factory(name="Tester", specializations=["acoustic_qc"])
    packer = worker_factory(name="Packer", specializations=["packaging"])
    batch = batch_factory(stage="acoustic_qc")

    result = assignments.auto_assign(batch_id=batch.pk, acting_worker_id=manager.pk)

    assert set(result) == {"acoustic_qc", "packaging"}
    assert result["acoustic_qc"].worker_id == tester.pk
    assert result["packaging"].worker_id == packer.pk
    assert AuditLogEntry.objects.filter(batch=batch, action=AuditLogEntry.ACTION_ASSIGN_WORKER).count() == 2
    assert WorkerNotification.objects.filter(worker=packer, kind=WorkerNotification.KIND_ASSIGNMENT).exists()

    # Stages with an open assignment are left alone
    assert assignments.auto_assign(batch_id=batch.pk, acting_worker_id=manager.pk) == {}
    assert StageAssignment.objects.filter(batch=batch).count() == 2


@pytest.mark.django_db
def test_auto_assign_skips_overloaded_workers(manager, worker_factory, batch_factory):
    packer = worker_factory(name="Packer", specializations=["packaging"])
    for _ in range(assignments.MAX_OPEN_ASSIGNMENTS):
        other = batch_factory()
        assignments.assign(batch_id=other.pk, worker_id=packer.pk, stage="intake", acting_worker_id=manager.pk)

    batch = batch_factory(stage="packaging")
    result = assignments.auto_assign(batch_id=batch.pk, acting_worker_id=manager.pk)

    assert result["packaging"] is not None
    assert result["packaging"].worker_id != packer.pk


@pytest.mark.django_db
def test_auto_assign_leaves_stage_empty_without_capacity(manager, batch_factory, monkeypatch, caplog):
    batch = batch_factory(stage="packaging")
    monkeypatch.setattr(assignments, "MAX_OPEN_ASSIGNMENTS", 0)

    with caplog.at_level(logging.WARNING, logger="shopfloor_core.services.assignments"):
        result = assignments.auto_assign(batch_id=batch.pk, acting_worker_id=manager.pk)

    assert result == {"packaging": None}
    assert not StageAssignment.objects.filter(batch=batch).exists()
    assert "No available worker" in caplog.text


# ===============================================================
# Per-worker summary
# ===============================================================

@pytest.mark.django_db
def test_worker_assignment_summary(manager, worker, worker_factory, batch):
    done = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="intake", acting_worker_id=manager.pk)
    StageAssignment.objects.filter(pk=done.pk).update(started_at=timezone.now() - timedelta(minutes=40))
    assignments.complete(assignment_id=done.pk, worker_id=worker.pk, quality_status="good")
    open_one = assignments.assign(batch_id=batch.pk, worker_id=worker.pk, stage="sanding", acting_worker_id=manager.pk)

    summary = assignments.worker_assignments(worker_id=worker.pk, acting_worker_id=worker.pk)

    assert [a.pk for a in summary["active"]] == [open_one.pk]
    assert [a.pk for a in summary["completed"]] == [done.pk]
    assert summary["stats"] == {"total_completed": 1, "average_minutes": 40}

    assert assignments.worker_assignments(worker_id=worker.pk, acting_worker_id=manager.pk)["worker"] == worker

    with pytest.raises(Forbidden):
        assignments.worker_assignments(worker_id=worker.pk, acting_worker_id=worker_factory().pk)
    with pytest.raises(NotFound):
        assignments.worker_assignments(worker_id=777777, acting_worker_id=manager.pk)
