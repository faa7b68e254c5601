from django.core.exceptions import PermissionDenied
from django.db import models
from django.db.models import Q


class AuditLogQuerySet(models.QuerySet):
    def update(self, **kwargs):
        raise PermissionDenied("Audit log entries are immutable.")

    def delete(self):
        raise PermissionDenied("Audit log entries cannot be deleted.")


class AuditLogEntry(models.Model):
    """
    Append-only audit record.

    Stage-bearing entries carry `sequence`, equal to the batch version the
    entry produced (0 for creation). Sequence is unique per batch, so
    ordering a batch's entries by sequence replays its stage history.
    """

    ACTION_CREATE_BATCH = "create_batch"
    ACTION_STAGE_TRANSITION = "stage_transition"
    ACTION_ASSIGN_WORKER = "assign_worker"
    ACTION_QUALITY_CHECK = "quality_check"
    ACTION_RESOLVE_QUALITY_CHECK = "resolve_quality_check"

    actor = models.ForeignKey(
        "shopfloor_core.Worker",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="audit_entries",
    )
    action = models.CharField(max_length=64)
    context = models.CharField(max_length=64, default="production")

    batch = models.ForeignKey(
        "shopfloor_core.Batch",
        null=True,
        blank=True,
        on_delete=models.PROTECT,
        related_name="audit_entries",
    )
    sequence = models.PositiveIntegerField(null=True, blank=True)
    from_stage = models.CharField(max_length=64, blank=True)
    to_stage = models.CharField(max_length=64, blank=True)

    detail = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    objects = AuditLogQuerySet.as_manager()

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name_plural = "audit log entries"
        constraints = [
            models.UniqueConstraint(
                fields=["batch", "sequence"],
                condition=Q(sequence__isnull=False),
                name="uniq_audit_sequence_per_batch",
            ),
        ]
        indexes = [
            models.Index(fields=["action", "created_at"], name="shopfloor_c_action_5e7b1c_idx"),
        ]

    def __str__(self):
        if self.to_stage:
            return f"{self.action} batch={self.batch_id} {self.from_stage or '-'} -> {self.to_stage}"
        return f"{self.action} ({self.context})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise PermissionDenied("Audit log entries are immutable.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise PermissionDenied("Audit log entries cannot be deleted.")
