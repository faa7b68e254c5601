# shopfloor_core/views.py
from __future__ import annotations

from django.utils import timezone

from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .filters import (
    AuditLogEntryFilter,
    BatchFilter,
    OrderFilter,
    QualityCheckFilter,
    StageAlertFilter,
    WorkerFilter,
)
from .models import (
    AuditLogEntry,
    Batch,
    Order,
    QualityCheck,
    StageAlert,
    StageAssignment,
    Worker,
    WorkerNotification,
)
from .permissions import IsActiveWorker, IsManagerOrReadOnly, resolve_worker
from .serializers import (
    AssignRequestSerializer,
    AuditLogEntrySerializer,
    BatchCreateSerializer,
    BatchSerializer,
    CompleteAssignmentSerializer,
    OrderSerializer,
    QualityCheckCreateSerializer,
    QualityCheckSerializer,
    ResolveSerializer,
    StageAlertSerializer,
    StageAssignmentSerializer,
    WorkerAssignmentsSerializer,
    WorkerNotificationSerializer,
    WorkerSerializer,
)
from .services import assignments as assignment_service
from .services import notifications as notification_service
from .services import quality as quality_service
from .services.batches import create_batch


# ===============================================================
# Health
# ===============================================================
class HealthCheckView(APIView):
    authentication_classes = []
    permission_classes = [AllowAny]

    def get(self, request):
        return Response({"status": "ok", "time": timezone.now()})


# ===============================================================
# Orders / Workers (directory data)
# ===============================================================
class OrderViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    mixins.CreateModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Order.objects.all()
    serializer_class = OrderSerializer
    permission_classes = [IsManagerOrReadOnly]
    filterset_class = OrderFilter


class WorkerViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = Worker.objects.select_related("user").all()
    serializer_class = WorkerSerializer
    permission_classes = [IsActiveWorker]
    filterset_class = WorkerFilter

    @extend_schema(responses=WorkerAssignmentsSerializer)
    @action(detail=True, methods=["get"])
    def assignments(self, request, pk=None):
        """
        Open and completed assignments with completion stats.
        Workers read their own; managers read anyone's.
        """
        worker = resolve_worker(request.user)
        summary = assignment_service.worker_assignments(worker_id=pk, acting_worker_id=worker.pk)
        return Response(WorkerAssignmentsSerializer(summary).data)


# ===============================================================
# Batches
# ===============================================================
class BatchViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Read batches; POST creates a batch from pending orders.
    Stage changes go through /batches/<id>/transition/ only.
    """
    queryset = Batch.objects.select_related("created_by").prefetch_related("batch_orders")
    serializer_class = BatchSerializer
    permission_classes = [IsManagerOrReadOnly]
    filterset_class = BatchFilter

    @extend_schema(request=BatchCreateSerializer, responses=BatchSerializer)
    def create(self, request):
        worker = resolve_worker(request.user)
        payload = BatchCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        batch = create_batch(
            order_ids=payload.validated_data["order_ids"],
            acting_worker_id=worker.pk,
            priority=payload.validated_data["priority"],
            notes=payload.validated_data["notes"],
        )
        return Response(BatchSerializer(batch).data, status=status.HTTP_201_CREATED)


# ===============================================================
# Quality checks
# ===============================================================
class QualityCheckViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = QualityCheck.objects.select_related("performed_by", "resolved_by")
    serializer_class = QualityCheckSerializer
    permission_classes = [IsActiveWorker]
    filterset_class = QualityCheckFilter

    @extend_schema(request=QualityCheckCreateSerializer, responses=QualityCheckSerializer)
    def create(self, request):
        worker = resolve_worker(request.user)
        payload = QualityCheckCreateSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        check = quality_service.record_check(
            batch_id=data["batch"],
            stage=data["stage"] or None,
            outcome=data["outcome"],
            acting_worker_id=worker.pk,
            checklist_data=data["checklist_data"],
            photos=data["photos"],
            notes=data["notes"],
        )
        return Response(QualityCheckSerializer(check).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=ResolveSerializer, responses=QualityCheckSerializer)
    @action(detail=True, methods=["post"])
    def resolve(self, request, pk=None):
        worker = resolve_worker(request.user)
        payload = ResolveSerializer(data=request.data)
        payload.is_valid(raise_exception=True)

        check = quality_service.resolve(
            check_id=pk,
            resolution_notes=payload.validated_data["resolution_notes"],
            resolver_id=worker.pk,
        )
        return Response(QualityCheckSerializer(check).data)


# ===============================================================
# Assignments
# ===============================================================
class StageAssignmentViewSet(
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    """
    Workers see their own assignments; managers see all.
    ?active=1 limits to open assignments.
    """
    serializer_class = StageAssignmentSerializer
    permission_classes = [IsActiveWorker]
    filterset_fields = ["batch", "stage", "worker"]

    def get_queryset(self):
        worker = resolve_worker(self.request.user)
        qs = StageAssignment.objects.select_related("worker", "assigned_by", "batch")
        if worker.role == Worker.ROLE_WORKER:
            qs = qs.filter(worker=worker)
        if self.request.query_params.get("active") in {"1", "true", "yes"}:
            qs = qs.filter(completed_at__isnull=True)
        return qs

    @extend_schema(request=AssignRequestSerializer, responses=StageAssignmentSerializer)
    def create(self, request):
        worker = resolve_worker(request.user)
        payload = AssignRequestSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        assignment = assignment_service.assign(
            batch_id=data["batch"],
            worker_id=data["worker"],
            stage=data["stage"],
            acting_worker_id=worker.pk,
            notes=data["notes"],
        )
        return Response(StageAssignmentSerializer(assignment).data, status=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses=StageAssignmentSerializer)
    @action(detail=True, methods=["post"])
    def start(self, request, pk=None):
        worker = resolve_worker(request.user)
        assignment = assignment_service.start(assignment_id=pk, worker_id=worker.pk)
        return Response(StageAssignmentSerializer(assignment).data)

    @extend_schema(request=CompleteAssignmentSerializer, responses=StageAssignmentSerializer)
    @action(detail=True, methods=["post"])
    def complete(self, request, pk=None):
        worker = resolve_worker(request.user)
        payload = CompleteAssignmentSerializer(data=request.data)
        payload.is_valid(raise_exception=True)
        data = payload.validated_data

        assignment = assignment_service.complete(
            assignment_id=pk,
            worker_id=worker.pk,
            quality_status=data["quality_status"],
            time_spent_minutes=data["time_spent_minutes"],
            notes=data["notes"],
        )
        return Response(StageAssignmentSerializer(assignment).data)


# ===============================================================
# Notifications
# ===============================================================
class WorkerNotificationViewSet(
    mixins.ListModelMixin,
    viewsets.GenericViewSet,
):
    serializer_class = WorkerNotificationSerializer
    permission_classes = [IsActiveWorker]
    filterset_fields = ["kind", "is_read"]

    def get_queryset(self):
        worker = resolve_worker(self.request.user)
        return WorkerNotification.objects.filter(worker=worker)

    @extend_schema(request=None, responses=WorkerNotificationSerializer)
    @action(detail=True, methods=["post"])
    def read(self, request, pk=None):
        worker = resolve_worker(request.user)
        note = notification_service.mark_read(notification_id=pk, worker_id=worker.pk)
        return Response(WorkerNotificationSerializer(note).data)

    @extend_schema(request=None, responses=None)
    @action(detail=False, methods=["post"], url_path="read-all")
    def read_all(self, request):
        worker = resolve_worker(request.user)
        count = notification_service.mark_all_read(worker_id=worker.pk)
        return Response({"marked_read": count})


# ===============================================================
# Audit log / alerts (read-only)
# ===============================================================
class AuditLogViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = AuditLogEntry.objects.select_related("actor")
    serializer_class = AuditLogEntrySerializer
    permission_classes = [IsActiveWorker]
    filterset_class = AuditLogEntryFilter


class StageAlertViewSet(viewsets.ReadOnlyModelViewSet):
    queryset = StageAlert.objects.select_related("batch")
    serializer_class = StageAlertSerializer
    permission_classes = [IsActiveWorker]
    filterset_class = StageAlertFilter
