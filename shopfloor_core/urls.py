# shopfloor_core/urls.py

from django.urls import path, include
from rest_framework.routers import DefaultRouter

# -------------------------------------------------
# Core API ViewSets
# -------------------------------------------------
from .views import (
    HealthCheckView,
    OrderViewSet,
    WorkerViewSet,
    BatchViewSet,
    QualityCheckViewSet,
    StageAssignmentViewSet,
    WorkerNotificationViewSet,
    AuditLogViewSet,
    StageAlertViewSet,
)

# -------------------------------------------------
# Stage workflow (definition, allowed, transition, history)
# -------------------------------------------------
from .views_workflow_api import (
    WorkflowDefinitionView,
    StageChecklistView,
    BatchAllowedView,
    BatchTransitionView,
    BatchHistoryView,
    PipelineView,
    StageRecommendationsView,
    BatchAutoAssignView,
)

# -------------------------------------------------
# Stage metrics
# -------------------------------------------------
from .views_workflow_metrics import (
    BatchDwellView,
    BottleneckView,
)

# -------------------------------------------------
# Identity
# -------------------------------------------------
from .views_identity import WhoAmIView


app_name = "shopfloor_core"

# -------------------------------------------------
# Router
# -------------------------------------------------
router = DefaultRouter()
router.register(r"orders", OrderViewSet, basename="order")
router.register(r"workers", WorkerViewSet, basename="worker")
router.register(r"batches", BatchViewSet, basename="batch")
router.register(r"quality-checks", QualityCheckViewSet, basename="quality-check")
router.register(r"assignments", StageAssignmentViewSet, basename="assignment")
router.register(r"notifications", WorkerNotificationViewSet, basename="notification")
router.register(r"audit-log", AuditLogViewSet, basename="auditlog")
router.register(r"stage-alerts", StageAlertViewSet, basename="stage-alert")


urlpatterns = [
    # ============================================================
    # System
    # ============================================================
    path("health/", HealthCheckView.as_view(), name="health"),
    path("whoami/", WhoAmIView.as_view(), name="whoami"),

    # ============================================================
    # Stage workflow
    # ============================================================
    path("workflow/definition/", WorkflowDefinitionView.as_view(), name="workflow-definition"),
    path(
        "workflow/stages/<str:stage>/checklist/",
        StageChecklistView.as_view(),
        name="stage-checklist",
    ),
    path(
        "workflow/stages/<str:stage>/recommendations/",
        StageRecommendationsView.as_view(),
        name="stage-recommendations",
    ),
    path("batches/<int:pk>/allowed/", BatchAllowedView.as_view(), name="batch-allowed"),
    path("batches/<int:pk>/transition/", BatchTransitionView.as_view(), name="batch-transition"),
    path("batches/<int:pk>/history/", BatchHistoryView.as_view(), name="batch-history"),
    path("batches/<int:pk>/auto-assign/", BatchAutoAssignView.as_view(), name="batch-auto-assign"),
    path("pipeline/", PipelineView.as_view(), name="pipeline"),

    # ============================================================
    # Metrics
    # ============================================================
    path("batches/<int:pk>/dwell/", BatchDwellView.as_view(), name="batch-dwell"),
    path("metrics/bottlenecks/", BottleneckView.as_view(), name="metrics-bottlenecks"),

    # ============================================================
    # CRUD API
    # ============================================================
    path("", include(router.urls)),
]
