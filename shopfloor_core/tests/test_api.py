# shopfloor_core/tests/test_api.py

import pytest
from django.contrib.auth import get_user_model

from shopfloor_core.models import AuditLogEntry, Batch, StageAssignment


API = "/api/v1"


def _login(api_client, username):
    assert api_client.login(username=username, password="pass123") is True


# ===============================================================
# Identity and error envelope
# ===============================================================

@pytest.mark.django_db
def test_health_needs_no_auth(api_client):
    resp = api_client.get(f"{API}/health/")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


@pytest.mark.django_db
def test_anonymous_request_is_unauthorized(api_client):
    resp = api_client.get(f"{API}/pipeline/")
    assert resp.status_code == 401
    assert resp.json()["kind"] == "Unauthorized"


@pytest.mark.django_db
def test_user_without_worker_profile_is_forbidden(api_client):
    get_user_model().objects.create_user(username="visitor", password="pass123")
    _login(api_client, "visitor")

    resp = api_client.get(f"{API}/whoami/")
    assert resp.status_code == 403
    assert resp.json()["kind"] == "Forbidden"


@pytest.mark.django_db
def test_whoami_reports_capability(api_client, manager, worker):
    _login(api_client, "manager")
    data = api_client.get(f"{API}/whoami/").json()
    assert data["worker"]["id"] == manager.pk
    assert data["can_manage_production"] is True
    api_client.logout()

    _login(api_client, "worker")
    assert api_client.get(f"{API}/whoami/").json()["can_manage_production"] is False


# ===============================================================
# Transitions
# ===============================================================

@pytest.mark.django_db
def test_allowed_stages_depend_on_role(api_client, manager, worker, batch):
    _login(api_client, "worker")
    resp = api_client.get(f"{API}/batches/{batch.pk}/allowed/")
    assert resp.status_code == 200
    assert resp.json()["allowed"] == []
    api_client.logout()

    _login(api_client, "manager")
    resp = api_client.get(f"{API}/batches/{batch.pk}/allowed/")
    assert resp.json()["allowed"] == [{"stage": "sanding", "requires_quality_gate": True}]


@pytest.mark.django_db
def test_worker_cannot_transition(api_client, worker, batch_factory):
    batch = batch_factory(stage="sanding")
    _login(api_client, "worker")

    resp = api_client.post(f"{API}/batches/{batch.pk}/transition/", {"target_stage": "finishing"}, format="json")
    assert resp.status_code == 403
    assert resp.json()["kind"] == "Forbidden"


@pytest.mark.django_db
def test_transition_error_kinds(api_client, manager, batch):
    _login(api_client, "manager")
    url = f"{API}/batches/{batch.pk}/transition/"

    resp = api_client.post(url, {"target_stage": "packaging"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "InvalidTransition"

    resp = api_client.post(url, {"target_stage": "sanding"}, format="json")
    assert resp.status_code == 409
    assert resp.json()["kind"] == "QualityGateNotSatisfied"

    resp = api_client.post(url, {"target_stage": "sanding", "quality_check_id": 99999}, format="json")
    assert resp.status_code == 404
    assert resp.json()["kind"] == "NotFound"

    resp = api_client.post(url, {}, format="json")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"

    resp = api_client.post(f"{API}/batches/88888/transition/", {"target_stage": "sanding"}, format="json")
    assert resp.status_code == 404

    batch.refresh_from_db()
    assert batch.current_stage == "intake"


@pytest.mark.django_db
def test_quality_check_then_transition_then_history(api_client, manager, batch):
    _login(api_client, "manager")

    resp = api_client.post(
        f"{API}/quality-checks/",
        {"batch": batch.pk, "outcome": "pass", "checklist_data": {"Verify dimensions": True}},
        format="json",
    )
    assert resp.status_code == 201
    check_id = resp.json()["id"]

    resp = api_client.post(
        f"{API}/batches/{batch.pk}/transition/",
        {"target_stage": "sanding", "quality_check_id": check_id, "notes": "Wood accepted"},
        format="json",
    )
    assert resp.status_code == 200
    body = resp.json()
    assert body["current_stage"] == "sanding"
    assert body["version"] == 1

    history = api_client.get(f"{API}/batches/{batch.pk}/history/").json()
    assert history["replayed_stages"] == ["intake", "sanding"]
    assert history["entries"][-1]["detail"]["quality_check_id"] == check_id


@pytest.mark.django_db
def test_failing_check_resolved_over_api(api_client, worker, manager, batch):
    _login(api_client, "worker")
    check_id = api_client.post(
        f"{API}/quality-checks/",
        {"batch": batch.pk, "outcome": "fail", "notes": "Split along grain"},
        format="json",
    ).json()["id"]

    resp = api_client.post(f"{API}/quality-checks/{check_id}/resolve/", {"resolution_notes": ""}, format="json")
    assert resp.status_code == 400

    resp = api_client.post(
        f"{API}/quality-checks/{check_id}/resolve/",
        {"resolution_notes": "Replaced the panel"},
        format="json",
    )
    assert resp.status_code == 200
    assert resp.json()["is_resolved"] is True

    resp = api_client.post(
        f"{API}/quality-checks/{check_id}/resolve/",
        {"resolution_notes": "Again"},
        format="json",
    )
    assert resp.status_code == 409
    assert resp.json()["kind"] == "Conflict"


# ===============================================================
# Batches and assignments
# ===============================================================

@pytest.mark.django_db
def test_create_batch_over_api(api_client, manager, worker, orders):
    payload = {"order_ids": [o.pk for o in orders], "priority": "urgent"}

    _login(api_client, "worker")
    resp = api_client.post(f"{API}/batches/", payload, format="json")
    assert resp.status_code == 403
    api_client.logout()

    _login(api_client, "manager")
    resp = api_client.post(f"{API}/batches/", payload, format="json")
    assert resp.status_code == 201
    body = resp.json()
    assert body["current_stage"] == "intake"
    assert body["order_ids"] == [o.pk for o in orders]

    resp = api_client.post(f"{API}/batches/", payload, format="json")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"

    pipeline = api_client.get(f"{API}/pipeline/").json()["stages"]
    assert pipeline[0]["stage"] == "intake"
    assert pipeline[0]["count"] == 1


@pytest.mark.django_db
def test_assignment_flow_over_api(api_client, manager, worker, batch):
    _login(api_client, "manager")
    payload = {"batch": batch.pk, "worker": worker.pk, "stage": "intake"}

    resp = api_client.post(f"{API}/assignments/", payload, format="json")
    assert resp.status_code == 201
    assignment_id = resp.json()["id"]

    resp = api_client.post(f"{API}/assignments/", payload, format="json")
    assert resp.status_code == 409
    assert resp.json()["kind"] == "AssignmentConflict"

    resp = api_client.post(f"{API}/assignments/", {**payload, "stage": "painting"}, format="json")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "UnknownStage"
    api_client.logout()

    _login(api_client, "worker")
    mine = api_client.get(f"{API}/assignments/?active=1").json()["results"]
    assert [a["id"] for a in mine] == [assignment_id]

    resp = api_client.post(f"{API}/assignments/{assignment_id}/start/", format="json")
    assert resp.status_code == 200

    resp = api_client.post(
        f"{API}/assignments/{assignment_id}/complete/",
        {"quality_status": "good", "time_spent_minutes": 30},
        format="json",
    )
    assert resp.status_code == 200
    assert StageAssignment.objects.get(pk=assignment_id).time_spent_minutes == 30

    notes = api_client.get(f"{API}/notifications/").json()["results"]
    assert {n["title"] for n in notes} == {"New Assignment", "Task Completed!"}

    resp = api_client.post(f"{API}/notifications/read-all/", format="json")
    assert resp.json()["marked_read"] == 2


@pytest.mark.django_db
def test_recommendations_and_auto_assign_over_api(api_client, manager, worker, worker_factory, batch_factory):
    packer = worker_factory(name="Packer", specializations=["packaging"])
    batch = batch_factory(stage="packaging")

    _login(api_client, "worker")
    assert api_client.get(f"{API}/workflow/stages/packaging/recommendations/").status_code == 403
    assert api_client.post(f"{API}/batches/{batch.pk}/auto-assign/", format="json").status_code == 403
    api_client.logout()

    _login(api_client, "manager")
    resp = api_client.get(f"{API}/workflow/stages/packaging/recommendations/?limit=2")
    assert resp.status_code == 200
    recs = resp.json()["recommendations"]
    assert len(recs) == 2
    assert recs[0]["worker"]["id"] == packer.pk
    assert recs[0]["has_specialization"] is True

    assert api_client.get(f"{API}/workflow/stages/packaging/recommendations/?limit=0").status_code == 400
    resp = api_client.get(f"{API}/workflow/stages/painting/recommendations/")
    assert resp.json()["kind"] == "UnknownStage"

    resp = api_client.post(f"{API}/batches/{batch.pk}/auto-assign/", format="json")
    assert resp.status_code == 200
    assert resp.json()["assignments"]["packaging"]["worker"]["id"] == packer.pk


@pytest.mark.django_db
def test_worker_assignment_summary_over_api(api_client, manager, worker, worker_factory, batch):
    assignment = StageAssignment.objects.create(worker=worker, batch=batch, stage="intake", assigned_by=manager)
    nosy = worker_factory(username="nosy")

    _login(api_client, "worker")
    resp = api_client.get(f"{API}/workers/{worker.pk}/assignments/")
    assert resp.status_code == 200
    body = resp.json()
    assert [a["id"] for a in body["active"]] == [assignment.pk]
    assert body["stats"] == {"total_completed": 0, "average_minutes": 0}
    api_client.logout()

    _login(api_client, "nosy")
    resp = api_client.get(f"{API}/workers/{worker.pk}/assignments/")
    assert resp.status_code == 403
    assert resp.json()["kind"] == "Forbidden"
    assert api_client.get(f"{API}/workers/{nosy.pk}/assignments/").status_code == 200


@pytest.mark.django_db
def test_audit_log_is_read_only(api_client, manager, batch):
    _login(api_client, "manager")
    entry = AuditLogEntry.objects.get(batch=batch)

    assert api_client.get(f"{API}/audit-log/?batch={batch.pk}").json()["count"] == 1
    assert api_client.delete(f"{API}/audit-log/{entry.pk}/").status_code == 405
    assert api_client.patch(f"{API}/audit-log/{entry.pk}/", {"to_stage": "shipped"}, format="json").status_code == 405


# ===============================================================
# Read-only workflow data and metrics
# ===============================================================

@pytest.mark.django_db
def test_workflow_definition_and_checklist(api_client, worker):
    _login(api_client, "worker")

    data = api_client.get(f"{API}/workflow/definition/").json()
    assert data["initial"] == "intake"

    resp = api_client.get(f"{API}/workflow/stages/packaging/checklist/")
    assert resp.status_code == 200
    assert len(resp.json()["checklist"]) == 3

    resp = api_client.get(f"{API}/workflow/stages/painting/checklist/")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "UnknownStage"


@pytest.mark.django_db
def test_bottlenecks_are_manager_only(api_client, manager, worker, batch):
    _login(api_client, "worker")
    assert api_client.get(f"{API}/metrics/bottlenecks/").status_code == 403
    api_client.logout()

    _login(api_client, "manager")
    resp = api_client.get(f"{API}/metrics/bottlenecks/?days=7")
    assert resp.status_code == 200
    assert resp.json()["days"] == 7
    assert [row["stage"] for row in resp.json()["stages"]][0] == "intake"

    assert api_client.get(f"{API}/metrics/bottlenecks/?days=abc").status_code == 400

    resp = api_client.get(f"{API}/metrics/bottlenecks/?days={10**12}")
    assert resp.status_code == 400
    assert resp.json()["kind"] == "ValidationError"


@pytest.mark.django_db
def test_batch_dwell(api_client, worker, batch):
    _login(api_client, "worker")
    data = api_client.get(f"{API}/batches/{batch.pk}/dwell/").json()
    assert data["stage"] == "intake"
    assert data["status"] == "ok"
    assert "intake" in data["time_in_stages"]
    assert Batch.objects.get(pk=batch.pk).current_stage == "intake"
