# shopfloor_core/filters.py
import django_filters as df

from .models import AuditLogEntry, Batch, Order, QualityCheck, StageAlert, Worker


class OrderFilter(df.FilterSet):
    order_number = df.CharFilter(field_name="order_number", lookup_expr="icontains")
    customer_name = df.CharFilter(field_name="customer_name", lookup_expr="icontains")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = Order
        fields = ["status", "order_number", "customer_name", "model_name", "created_at"]


class BatchFilter(df.FilterSet):
    batch_number = df.CharFilter(field_name="batch_number", lookup_expr="icontains")
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = Batch
        fields = ["current_stage", "priority", "is_complete", "quality_status", "batch_number", "created_at"]


class WorkerFilter(df.FilterSet):
    name = df.CharFilter(field_name="name", lookup_expr="icontains")

    class Meta:
        model = Worker
        fields = ["role", "is_active", "approval_status", "name"]


class QualityCheckFilter(df.FilterSet):
    unresolved = df.BooleanFilter(field_name="resolved_at", lookup_expr="isnull")

    class Meta:
        model = QualityCheck
        fields = ["batch", "stage", "outcome", "unresolved"]


class AuditLogEntryFilter(df.FilterSet):
    created_at = df.DateFromToRangeFilter()

    class Meta:
        model = AuditLogEntry
        fields = ["batch", "action", "context", "actor", "created_at"]


class StageAlertFilter(df.FilterSet):
    open = df.BooleanFilter(field_name="resolved_at", lookup_expr="isnull")

    class Meta:
        model = StageAlert
        fields = ["batch", "stage", "severity", "open"]
