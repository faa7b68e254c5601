# shopfloor_core/views_workflow_api.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from shopfloor_core.config.services import load_stage_graph
from shopfloor_core.permissions import resolve_worker
from shopfloor_core.serializers import (
    AuditLogEntrySerializer,
    BatchSerializer,
    StageAssignmentSerializer,
    TransitionRequestSerializer,
    WorkerRecommendationSerializer,
)
from shopfloor_core.services import assignments as assignment_service
from shopfloor_core.services.batches import get_batch, production_pipeline, stage_history
from shopfloor_core.services.quality import checklist_for_stage
from shopfloor_core.workflows import allowed_transitions, workflow_definition
from shopfloor_core.workflows.executor import transition


# =============================================================
# API: Stage graph (read-only)
# =============================================================

class WorkflowDefinitionView(APIView):
    """
    GET /api/v1/workflow/definition/
    """
    permission_classes = [AllowAny]

    def get(self, request):
        resolve_worker(request.user)
        return Response(workflow_definition())


class StageChecklistView(APIView):
    """
    GET /api/v1/workflow/stages/<stage>/checklist/
    """
    permission_classes = [AllowAny]

    def get(self, request, stage: str):
        resolve_worker(request.user)
        return Response({"stage": stage, "checklist": checklist_for_stage(stage)})


# =============================================================
# API: Allowed transitions
# =============================================================

class BatchAllowedView(APIView):
    """
    GET /api/v1/batches/<pk>/allowed/

    Returns:
    - current stage
    - allowed next stages (role-aware)
    - gate requirement per next stage
    """
    # AllowAny + explicit resolve_worker so failures carry a typed kind
    # instead of DRF's generic 403.
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        worker = resolve_worker(request.user)
        batch = get_batch(pk)
        graph = load_stage_graph()

        allowed = [] if batch.is_complete else allowed_transitions(
            batch.current_stage, worker.role, graph
        )

        return Response(
            {
                "batch_id": batch.pk,
                "current": batch.current_stage,
                "allowed": [
                    {
                        "stage": s,
                        "requires_quality_gate": graph.edge(batch.current_stage, s).requires_quality_gate,
                    }
                    for s in allowed
                ],
                "role": worker.role,
            }
        )


# =============================================================
# API: Execute stage transition (AUTHORITATIVE)
# =============================================================

class BatchTransitionView(APIView):
    """
    POST /api/v1/batches/<pk>/transition/

    Body:
        {"target_stage": "packaging", "quality_check_id": 12, "notes": "..."}

    This endpoint is the ONLY API-level entry point that changes a
    batch's stage.
    """
    permission_classes = [AllowAny]

    @extend_schema(request=TransitionRequestSerializer, responses=BatchSerializer)
    def post(self, request, pk: int):
        worker = resolve_worker(request.user)

        payload = TransitionRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        batch = transition(
            batch_id=pk,
            target_stage=data["target_stage"],
            acting_worker_id=worker.pk,
            quality_check_id=data["quality_check_id"],
            notes=data["notes"],
        )
        return Response(BatchSerializer(batch).data)


# =============================================================
# API: History and pipeline
# =============================================================

class BatchHistoryView(APIView):
    """
    GET /api/v1/batches/<pk>/history/

    Sequenced audit entries plus the stage list replayed from them.
    """
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        resolve_worker(request.user)
        history = stage_history(pk)

        return Response(
            {
                "batch_id": history["batch"].pk,
                "current": history["batch"].current_stage,
                "entries": AuditLogEntrySerializer(history["entries"], many=True).data,
                "replayed_stages": history["replayed_stages"],
            }
        )


class PipelineView(APIView):
    """
    GET /api/v1/pipeline/
    """
    permission_classes = [AllowAny]

    def get(self, request):
        resolve_worker(request.user)
        columns = production_pipeline()

        return Response(
            {
                "stages": [
                    {
                        "stage": col["stage"],
                        "name": col["name"],
                        "count": len(col["batches"]),
                        "batches": BatchSerializer(col["batches"], many=True).data,
                    }
                    for col in columns
                ]
            }
        )


# =============================================================
# API: Worker recommendations and auto-assignment
# =============================================================

class StageRecommendationsView(APIView):
    """
    GET /api/v1/workflow/stages/<stage>/recommendations/?limit=5

    Best-scored workers for a stage. Manager/admin only.
    """
    permission_classes = [AllowAny]

    @extend_schema(responses=WorkerRecommendationSerializer(many=True))
    def get(self, request, stage: str):
        worker = resolve_worker(request.user)

        raw = request.query_params.get("limit") or "5"
        try:
            limit = int(raw)
        except ValueError:
            raise ValidationError({"limit": "Must be an integer."})
        if not 1 <= limit <= 50:
            raise ValidationError({"limit": "Must be between 1 and 50."})

        ranked = assignment_service.recommend_workers(
            stage=stage,
            acting_worker_id=worker.pk,
            limit=limit,
        )
        return Response(
            {
                "stage": stage,
                "recommendations": WorkerRecommendationSerializer(ranked, many=True).data,
            }
        )


class BatchAutoAssignView(APIView):
    """
    POST /api/v1/batches/<pk>/auto-assign/

    Fills every remaining stage of the batch with the best available
    worker. Stages left unfilled come back as null.
    """
    permission_classes = [AllowAny]

    @extend_schema(request=None)
    def post(self, request, pk: int):
        worker = resolve_worker(request.user)
        result = assignment_service.auto_assign(batch_id=pk, acting_worker_id=worker.pk)

        return Response(
            {
                "batch_id": pk,
                "assignments": {
                    stage: StageAssignmentSerializer(a).data if a is not None else None
                    for stage, a in result.items()
                },
            }
        )
