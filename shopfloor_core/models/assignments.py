from django.db import models
from django.db.models import Q


class StageAssignment(models.Model):
    """
    A worker assigned to carry a batch through one stage.

    At most one open (uncompleted) assignment exists per (batch, stage).
    """

    QUALITY_GOOD = "good"
    QUALITY_WARNING = "warning"
    QUALITY_CRITICAL = "critical"
    QUALITY_HOLD = "hold"

    QUALITY_CHOICES = (
        (QUALITY_GOOD, "Good"),
        (QUALITY_WARNING, "Warning"),
        (QUALITY_CRITICAL, "Critical"),
        (QUALITY_HOLD, "Hold"),
    )

    worker = models.ForeignKey(
        "shopfloor_core.Worker",
        on_delete=models.PROTECT,
        related_name="assignments",
    )
    batch = models.ForeignKey(
        "shopfloor_core.Batch",
        on_delete=models.CASCADE,
        related_name="assignments",
    )
    stage = models.CharField(max_length=64)

    assigned_by = models.ForeignKey(
        "shopfloor_core.Worker",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="assignments_made",
    )
    assigned_at = models.DateTimeField(auto_now_add=True)
    started_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    quality_status = models.CharField(max_length=20, choices=QUALITY_CHOICES, blank=True)
    time_spent_minutes = models.PositiveIntegerField(null=True, blank=True)
    notes = models.TextField(blank=True)

    class Meta:
        ordering = ("-assigned_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["batch", "stage"],
                condition=Q(completed_at__isnull=True),
                name="uniq_open_assignment_per_batch_stage",
            ),
        ]

    def __str__(self):
        return f"{self.worker_id} -> {self.batch_id}@{self.stage}"

    @property
    def is_open(self) -> bool:
        return self.completed_at is None
