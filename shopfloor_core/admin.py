# shopfloor_core/admin.py

from django.contrib import admin, messages

from .config.services import activate_definition
from .models import (
    AuditLogEntry,
    Batch,
    BatchOrder,
    Order,
    QualityCheck,
    StageAlert,
    StageAssignment,
    StageGraphDefinition,
    Worker,
    WorkerNotification,
)
from .workflows.graph import StageGraphError


# =============================================================
# Audit log (READ-ONLY)
# =============================================================

@admin.register(AuditLogEntry)
class AuditLogEntryAdmin(admin.ModelAdmin):
    list_display = (
        "created_at",
        "action",
        "context",
        "batch",
        "sequence",
        "from_stage",
        "to_stage",
        "actor",
    )
    list_filter = ("action", "context", "to_stage")
    search_fields = ("batch__batch_number", "actor__name")
    ordering = ("-created_at",)

    readonly_fields = [f.name for f in AuditLogEntry._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False


# =============================================================
# Stage alerts (READ-ONLY)
# =============================================================

@admin.register(StageAlert)
class StageAlertAdmin(admin.ModelAdmin):
    list_display = (
        "batch",
        "stage",
        "severity",
        "dwell_seconds",
        "triggered_at",
        "resolved_at",
    )
    list_filter = ("severity", "stage")
    ordering = ("-triggered_at",)

    readonly_fields = [f.name for f in StageAlert._meta.fields]

    def has_add_permission(self, request):
        return False

    def has_change_permission(self, request, obj=None):
        return False


# =============================================================
# Production
# =============================================================

class BatchOrderInline(admin.TabularInline):
    model = BatchOrder
    extra = 0
    readonly_fields = ("order", "position")
    can_delete = False


@admin.register(Batch)
class BatchAdmin(admin.ModelAdmin):
    list_display = (
        "batch_number",
        "current_stage",
        "priority",
        "quality_status",
        "is_complete",
        "version",
        "created_at",
    )
    list_filter = ("current_stage", "priority", "quality_status", "is_complete")
    search_fields = ("batch_number",)
    # Stage and version change through the transition workflow only
    readonly_fields = ("current_stage", "version", "is_complete", "created_at", "updated_at")
    inlines = [BatchOrderInline]


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = ("order_number", "customer_name", "model_name", "status", "created_at")
    list_filter = ("status",)
    search_fields = ("order_number", "customer_name")


@admin.register(Worker)
class WorkerAdmin(admin.ModelAdmin):
    list_display = ("name", "email", "role", "is_active", "approval_status")
    list_filter = ("role", "is_active", "approval_status")
    search_fields = ("name", "email", "user__username")
    actions = ["approve_workers"]

    @admin.action(description="Approve selected workers")
    def approve_workers(self, request, queryset):
        updated = queryset.update(approval_status=Worker.APPROVAL_APPROVED)
        self.message_user(request, f"{updated} worker(s) approved.", messages.SUCCESS)


@admin.register(QualityCheck)
class QualityCheckAdmin(admin.ModelAdmin):
    list_display = ("id", "batch", "stage", "outcome", "performed_by", "resolved_at", "created_at")
    list_filter = ("outcome", "stage")
    search_fields = ("batch__batch_number",)


@admin.register(StageAssignment)
class StageAssignmentAdmin(admin.ModelAdmin):
    list_display = ("batch", "stage", "worker", "assigned_at", "started_at", "completed_at")
    list_filter = ("stage",)
    search_fields = ("batch__batch_number", "worker__name")


@admin.register(WorkerNotification)
class WorkerNotificationAdmin(admin.ModelAdmin):
    list_display = ("worker", "kind", "title", "is_read", "created_at")
    list_filter = ("kind", "is_read")


# =============================================================
# Stage graph definitions
# =============================================================

@admin.register(StageGraphDefinition)
class StageGraphDefinitionAdmin(admin.ModelAdmin):
    list_display = ("code", "version", "name", "is_active", "is_locked", "updated_at")
    list_filter = ("is_active", "is_locked")
    readonly_fields = ("is_active", "locked_at", "locked_by", "created_at", "updated_at")
    actions = ["activate_selected"]

    @admin.action(description="Activate selected stage graph")
    def activate_selected(self, request, queryset):
        if queryset.count() != 1:
            self.message_user(request, "Select exactly one stage graph.", messages.ERROR)
            return
        try:
            activate_definition(queryset.first())
        except StageGraphError as e:
            self.message_user(request, str(e), messages.ERROR)
            return
        self.message_user(request, "Stage graph activated.", messages.SUCCESS)
