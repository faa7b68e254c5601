# shopfloor_core/tests/test_stall_scanner.py
from __future__ import annotations

from datetime import timedelta

import pytest
from django.core import mail
from django.utils import timezone

from shopfloor_core import tasks
from shopfloor_core.models import Batch, StageAlert, WorkerNotification
from shopfloor_core.workflows.executor import transition
from shopfloor_core.workflows.graph import Stage
from shopfloor_core.workflows.sla import (
    DWELL_BREACH,
    DWELL_NONE,
    DWELL_OK,
    DWELL_WARNING,
    evaluate_dwell,
    get_thresholds,
)
from shopfloor_core.workflows.sla_scanner import scan_stalled_batches, stage_dwell


# ===============================================================
# Pure threshold evaluation
# ===============================================================

def test_evaluate_dwell_bands():
    stage = Stage(code="intake", name="Intake", warn_after=timedelta(hours=24), breach_after=timedelta(hours=48))
    assert evaluate_dwell(stage, timedelta(hours=1)) == DWELL_OK
    assert evaluate_dwell(stage, timedelta(hours=24)) == DWELL_WARNING
    assert evaluate_dwell(stage, timedelta(hours=60)) == DWELL_BREACH

    bare = Stage(code="shipped", name="Shipped", terminal=True)
    assert get_thresholds(bare) is None
    assert evaluate_dwell(bare, timedelta(days=30)) == DWELL_NONE


# ===============================================================
# Dwell of a live batch
# ===============================================================

@pytest.mark.django_db
def test_stage_dwell_follows_latest_stage_entry(batch):
    fresh = stage_dwell(batch)
    assert fresh["stage"] == "intake"
    assert fresh["entered_sequence"] == 0
    assert fresh["status"] == DWELL_OK
    assert fresh["warn_after_seconds"] == 24 * 3600
    assert fresh["breach_after_seconds"] == 48 * 3600

    later = stage_dwell(batch, now=timezone.now() + timedelta(hours=30))
    assert later["status"] == DWELL_WARNING
    assert later["dwell_seconds"] >= 30 * 3600 - 60


@pytest.mark.django_db
def test_stage_dwell_of_complete_batch_is_not_applicable(manager, batch_factory):
    batch = batch_factory(stage="packaging")
    done = transition(batch_id=batch.pk, target_stage="shipped", acting_worker_id=manager.pk)

    dwell = stage_dwell(done, now=timezone.now() + timedelta(days=10))
    assert dwell["status"] == DWELL_NONE
    assert dwell["entered_sequence"] == 1


# ===============================================================
# Scanner
# ===============================================================

@pytest.mark.django_db
def test_scan_is_idempotent_per_visit_and_severity(manager, batch):
    warn_time = timezone.now() + timedelta(hours=30)

    assert scan_stalled_batches(now=warn_time) == 1
    assert scan_stalled_batches(now=warn_time) == 0

    alert = StageAlert.objects.get(batch=batch)
    assert alert.severity == StageAlert.SEVERITY_WARNING
    assert alert.stage == "intake"
    assert alert.entered_sequence == 0
    assert alert.threshold_seconds == 24 * 3600
    assert alert.is_open

    breach_time = timezone.now() + timedelta(hours=50)
    assert scan_stalled_batches(now=breach_time) == 1
    assert StageAlert.objects.filter(batch=batch).count() == 2

    stalls = WorkerNotification.objects.filter(worker=manager, kind=WorkerNotification.KIND_STALL)
    assert stalls.count() == 2


@pytest.mark.django_db
def test_scan_skips_fresh_and_complete_batches(batch_factory):
    batch_factory()
    done = batch_factory(stage="packaging")
    Batch.objects.filter(pk=done.pk).update(current_stage="shipped", is_complete=True)

    assert scan_stalled_batches() == 0
    assert scan_stalled_batches(now=timezone.now() + timedelta(hours=30)) == 1


@pytest.mark.django_db
def test_leaving_the_stage_resolves_its_alerts(manager, batch, check_factory):
    scan_stalled_batches(now=timezone.now() + timedelta(hours=30))
    check = check_factory(batch=batch)

    transition(batch_id=batch.pk, target_stage="sanding", acting_worker_id=manager.pk, quality_check_id=check.pk)

    alert = StageAlert.objects.get(batch=batch)
    assert alert.resolved_at is not None
    assert alert.duration_seconds is not None


@pytest.mark.django_db
def test_new_visit_gets_its_own_alert(manager, batch_factory):
    batch = batch_factory(stage="acoustic_qc")
    later = timezone.now() + timedelta(hours=30)
    assert scan_stalled_batches(now=later) == 1

    transition(batch_id=batch.pk, target_stage="sanding", acting_worker_id=manager.pk)
    transition(batch_id=batch.pk, target_stage="finishing", acting_worker_id=manager.pk)
    transition(batch_id=batch.pk, target_stage="sub_assembly", acting_worker_id=manager.pk)
    transition(batch_id=batch.pk, target_stage="final_assembly", acting_worker_id=manager.pk)
    transition(batch_id=batch.pk, target_stage="acoustic_qc", acting_worker_id=manager.pk)

    assert scan_stalled_batches(now=later) == 1
    sequences = sorted(StageAlert.objects.filter(batch=batch).values_list("entered_sequence", flat=True))
    assert sequences == [0, 5]


# ===============================================================
# Celery task and e-mail copy
# ===============================================================

@pytest.mark.django_db
def test_task_runs_scanner(batch):
    assert tasks.scan_stalled_batches() == 0


@pytest.mark.django_db
def test_alert_email_is_feature_flagged(settings, batch):
    settings.STAGE_ALERT_EMAIL_NOTIFICATIONS = False
    settings.STAGE_ALERT_NOTIFY_EMAILS = ["ops@example.com"]
    scan_stalled_batches(now=timezone.now() + timedelta(hours=30))
    assert len(mail.outbox) == 0

    settings.STAGE_ALERT_EMAIL_NOTIFICATIONS = True
    scan_stalled_batches(now=timezone.now() + timedelta(hours=50))
    assert len(mail.outbox) == 1
    assert batch.batch_number in mail.outbox[0].subject
    assert "BREACH" in mail.outbox[0].subject
