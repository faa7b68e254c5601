from __future__ import annotations

from rest_framework import serializers

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


# ===============================================================
# Workers / Orders
# ===============================================================

class WorkerSerializer(serializers.ModelSerializer):
    username = serializers.SerializerMethodField()

    class Meta:
        model = Worker
        fields = (
            "id",
            "username",
            "name",
            "email",
            "role",
            "specializations",
            "is_active",
            "approval_status",
            "created_at",
        )
        read_only_fields = fields

    def get_username(self, obj) -> str | None:
        return obj.user.get_username() if obj.user_id else None


class WorkerSlimSerializer(serializers.ModelSerializer):
    class Meta:
        model = Worker
        fields = ("id", "name", "role")
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = (
            "id",
            "order_number",
            "customer_name",
            "model_name",
            "wood_type",
            "status",
            "notes",
            "created_at",
            "updated_at",
        )
        # Status follows the batch lifecycle, not client edits
        read_only_fields = ("id", "status", "created_at", "updated_at")


# ===============================================================
# Batches
# ===============================================================

class BatchSerializer(serializers.ModelSerializer):
    order_ids = serializers.ListField(child=serializers.IntegerField(), read_only=True)
    created_by = WorkerSlimSerializer(read_only=True)

    class Meta:
        model = Batch
        fields = (
            "id",
            "batch_number",
            "order_ids",
            "current_stage",
            "priority",
            "is_complete",
            "quality_status",
            "notes",
            "version",
            "created_by",
            "created_at",
            "updated_at",
        )
        read_only_fields = fields


class BatchCreateSerializer(serializers.Serializer):
    order_ids = serializers.ListField(child=serializers.IntegerField(), allow_empty=False)
    priority = serializers.ChoiceField(choices=Batch.PRIORITY_CHOICES, default=Batch.PRIORITY_STANDARD)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class TransitionRequestSerializer(serializers.Serializer):
    target_stage = serializers.CharField()
    quality_check_id = serializers.IntegerField(required=False, allow_null=True, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


# ===============================================================
# Quality
# ===============================================================

class QualityCheckSerializer(serializers.ModelSerializer):
    performed_by = WorkerSlimSerializer(read_only=True)
    resolved_by = WorkerSlimSerializer(read_only=True)
    is_resolved = serializers.BooleanField(read_only=True)
    satisfies_gate = serializers.BooleanField(read_only=True)

    class Meta:
        model = QualityCheck
        fields = (
            "id",
            "batch",
            "stage",
            "outcome",
            "checklist_data",
            "photos",
            "notes",
            "performed_by",
            "resolution_notes",
            "resolved_by",
            "resolved_at",
            "is_resolved",
            "satisfies_gate",
            "created_at",
        )
        read_only_fields = fields


class QualityCheckCreateSerializer(serializers.Serializer):
    batch = serializers.IntegerField()
    stage = serializers.CharField(required=False, allow_blank=True, default="")
    outcome = serializers.ChoiceField(choices=QualityCheck.OUTCOME_CHOICES)
    checklist_data = serializers.JSONField(required=False, default=dict)
    photos = serializers.ListField(child=serializers.URLField(), required=False, default=list)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class ResolveSerializer(serializers.Serializer):
    resolution_notes = serializers.CharField(allow_blank=True)


# ===============================================================
# Assignments
# ===============================================================

class StageAssignmentSerializer(serializers.ModelSerializer):
    worker = WorkerSlimSerializer(read_only=True)
    assigned_by = WorkerSlimSerializer(read_only=True)
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)

    class Meta:
        model = StageAssignment
        fields = (
            "id",
            "worker",
            "batch",
            "batch_number",
            "stage",
            "assigned_by",
            "assigned_at",
            "started_at",
            "completed_at",
            "quality_status",
            "time_spent_minutes",
            "notes",
        )
        read_only_fields = fields


class AssignRequestSerializer(serializers.Serializer):
    batch = serializers.IntegerField()
    worker = serializers.IntegerField()
    stage = serializers.CharField()
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CompleteAssignmentSerializer(serializers.Serializer):
    quality_status = serializers.ChoiceField(choices=StageAssignment.QUALITY_CHOICES)
    time_spent_minutes = serializers.IntegerField(required=False, allow_null=True, min_value=0, default=None)
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class WorkerRecommendationSerializer(serializers.Serializer):
    worker = WorkerSlimSerializer(read_only=True)
    score = serializers.IntegerField(read_only=True)
    has_specialization = serializers.BooleanField(read_only=True)
    open_assignments = serializers.IntegerField(read_only=True)
    quality_rate = serializers.FloatField(read_only=True)


class WorkerAssignmentsSerializer(serializers.Serializer):
    worker = WorkerSlimSerializer(read_only=True)
    active = StageAssignmentSerializer(many=True, read_only=True)
    completed = StageAssignmentSerializer(many=True, read_only=True)
    stats = serializers.DictField(read_only=True)


# ===============================================================
# Audit / notifications / alerts
# ===============================================================

class AuditLogEntrySerializer(serializers.ModelSerializer):
    actor = WorkerSlimSerializer(read_only=True)

    class Meta:
        model = AuditLogEntry
        fields = (
            "id",
            "actor",
            "action",
            "context",
            "batch",
            "sequence",
            "from_stage",
            "to_stage",
            "detail",
            "created_at",
        )
        read_only_fields = fields


class WorkerNotificationSerializer(serializers.ModelSerializer):
    class Meta:
        model = WorkerNotification
        fields = ("id", "kind", "title", "message", "data", "is_read", "read_at", "created_at")
        read_only_fields = fields


class StageAlertSerializer(serializers.ModelSerializer):
    batch_number = serializers.CharField(source="batch.batch_number", read_only=True)

    class Meta:
        model = StageAlert
        fields = (
            "id",
            "batch",
            "batch_number",
            "stage",
            "entered_sequence",
            "severity",
            "threshold_seconds",
            "dwell_seconds",
            "triggered_at",
            "resolved_at",
            "duration_seconds",
        )
        read_only_fields = fields
