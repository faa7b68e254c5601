# shopfloor_core/views_workflow_metrics.py

from datetime import timedelta

from django.conf import settings
from django.utils.timezone import now
from rest_framework.exceptions import ValidationError
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from shopfloor_core.permissions import require_role, resolve_worker
from shopfloor_core.services.batches import get_batch
from shopfloor_core.workflows import MANAGE_ROLES
from shopfloor_core.workflows.metrics import compute_time_in_stages, stage_bottlenecks
from shopfloor_core.workflows.sla_scanner import stage_dwell

# Upper bound for ?days= (ten years)
MAX_WINDOW_DAYS = 3650


class BatchDwellView(APIView):
    """
    GET /api/v1/batches/<pk>/dwell/

    Current stage dwell and status, plus time spent in each stage so far.
    """
    permission_classes = [AllowAny]

    def get(self, request, pk: int):
        resolve_worker(request.user)
        batch = get_batch(pk)

        dwell = stage_dwell(batch)
        per_stage = compute_time_in_stages(batch_id=batch.pk)

        return Response(
            {
                **dwell,
                "time_in_stages": {
                    stage: int(delta.total_seconds()) for stage, delta in per_stage.items()
                },
            }
        )


class BottleneckView(APIView):
    """
    GET /api/v1/metrics/bottlenecks/?days=30

    Manager/admin only.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        require_role(resolve_worker(request.user), MANAGE_ROLES)

        raw = request.query_params.get("days")
        days = getattr(settings, "SHOPFLOOR_BOTTLENECK_WINDOW_DAYS", 30)
        if raw not in (None, ""):
            try:
                days = int(raw)
            except ValueError:
                raise ValidationError({"days": "Must be an integer."})
            if days <= 0:
                raise ValidationError({"days": "Must be positive."})
            if days > MAX_WINDOW_DAYS:
                raise ValidationError({"days": f"Must be at most {MAX_WINDOW_DAYS}."})

        since = now() - timedelta(days=days)
        return Response(
            {
                "since": since,
                "days": days,
                "stages": stage_bottlenecks(since=since),
            }
        )
