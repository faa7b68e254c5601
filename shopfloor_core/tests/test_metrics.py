# shopfloor_core/tests/test_metrics.py
from __future__ import annotations

from datetime import timedelta

import pytest
from django.utils import timezone

from shopfloor_core.workflows.executor import transition
from shopfloor_core.workflows.metrics import (
    compute_time_in_stages,
    compute_total_cycle_time,
    stage_bottlenecks,
)


def _freeze(monkeypatch, moment):
    # auto_now_add reads django.utils.timezone.now at save time
    monkeypatch.setattr(timezone, "now", lambda: moment)


@pytest.fixture
def aged_batch(monkeypatch, manager, batch_factory, check_factory):
    """
    Batch created 100h ago that left intake after 50h and has sat in
    sanding since.
    """
    real_now = timezone.now()
    start = real_now - timedelta(hours=100)

    _freeze(monkeypatch, start)
    batch = batch_factory()
    check = check_factory(batch=batch)

    _freeze(monkeypatch, start + timedelta(hours=50))
    transition(batch_id=batch.pk, target_stage="sanding", acting_worker_id=manager.pk, quality_check_id=check.pk)

    monkeypatch.undo()
    return batch, start


@pytest.mark.django_db
def test_time_in_stages_and_cycle_time(aged_batch):
    batch, _start = aged_batch

    durations = compute_time_in_stages(batch_id=batch.pk)
    assert durations["intake"] == timedelta(hours=50)
    assert durations["sanding"] >= timedelta(hours=49)

    assert compute_total_cycle_time(batch_id=batch.pk) == timedelta(hours=50)


@pytest.mark.django_db
def test_cycle_time_without_history_is_zero():
    assert compute_total_cycle_time(batch_id=424242) == timedelta()


@pytest.mark.django_db
def test_bottlenecks_flag_slow_stages(aged_batch):
    _batch, start = aged_batch

    rows = {row["stage"]: row for row in stage_bottlenecks(since=start - timedelta(hours=1))}

    assert "shipped" not in rows
    assert rows["intake"]["completed_visits"] == 1
    assert rows["intake"]["avg_hours"] == 50.0
    assert rows["intake"]["status"] == "critical"

    assert rows["sanding"]["completed_visits"] == 0
    assert rows["sanding"]["in_progress"] == 1
    assert rows["sanding"]["status"] == "ok"


@pytest.mark.django_db
def test_bottleneck_window_excludes_older_visits(aged_batch):
    _batch, start = aged_batch

    rows = {row["stage"]: row for row in stage_bottlenecks(since=start + timedelta(hours=1))}
    assert rows["intake"]["completed_visits"] == 0
    assert rows["intake"]["avg_hours"] == 0.0
