from django.db import models
from django.utils import timezone


class StageAlert(models.Model):
    """
    Raised when a batch dwells in a stage past its warning or breach threshold.

    One alert per (batch, stage visit, severity); a stage visit is identified
    by the audit sequence of the entry that moved the batch into the stage.
    """

    SEVERITY_WARNING = "warning"
    SEVERITY_BREACH = "breach"

    SEVERITY_CHOICES = (
        (SEVERITY_WARNING, "Warning"),
        (SEVERITY_BREACH, "Breach"),
    )

    batch = models.ForeignKey(
        "shopfloor_core.Batch",
        on_delete=models.CASCADE,
        related_name="stage_alerts",
    )
    stage = models.CharField(max_length=64)
    entered_sequence = models.PositiveIntegerField()
    severity = models.CharField(max_length=20, choices=SEVERITY_CHOICES)

    threshold_seconds = models.PositiveIntegerField()
    dwell_seconds = models.PositiveIntegerField()

    triggered_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)
    duration_seconds = models.PositiveIntegerField(null=True, blank=True)

    class Meta:
        ordering = ("-triggered_at", "-id")
        constraints = [
            models.UniqueConstraint(
                fields=["batch", "entered_sequence", "severity"],
                name="uniq_stage_alert_per_visit",
            ),
        ]

    def __str__(self):
        return f"{self.batch_id} {self.stage} {self.severity.upper()}"

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None
