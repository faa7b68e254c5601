from django.db import models


class QualityCheck(models.Model):
    """
    Outcome of inspecting a batch at a stage.

    A check satisfies a quality gate when it passed, or when a failing/held
    outcome has since been resolved.
    """

    OUTCOME_PASS = "pass"
    OUTCOME_FAIL = "fail"
    OUTCOME_HOLD = "hold"

    OUTCOME_CHOICES = (
        (OUTCOME_PASS, "Pass"),
        (OUTCOME_FAIL, "Fail"),
        (OUTCOME_HOLD, "Hold"),
    )

    batch = models.ForeignKey(
        "shopfloor_core.Batch",
        on_delete=models.CASCADE,
        related_name="quality_checks",
    )
    stage = models.CharField(max_length=64)
    outcome = models.CharField(max_length=10, choices=OUTCOME_CHOICES)

    checklist_data = models.JSONField(default=dict, blank=True)
    photos = models.JSONField(default=list, blank=True)
    notes = models.TextField(blank=True)

    performed_by = models.ForeignKey(
        "shopfloor_core.Worker",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="quality_checks",
    )

    resolution_notes = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        "shopfloor_core.Worker",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="resolved_quality_checks",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["batch", "stage"], name="shopfloor_c_batch_i_8d2a6b_idx"),
        ]

    def __str__(self):
        return f"QC {self.pk} {self.batch_id}@{self.stage}: {self.outcome}"

    @property
    def is_resolved(self) -> bool:
        return self.resolved_at is not None

    @property
    def needs_resolution(self) -> bool:
        return self.outcome != self.OUTCOME_PASS and not self.is_resolved

    @property
    def satisfies_gate(self) -> bool:
        return self.outcome == self.OUTCOME_PASS or self.is_resolved
