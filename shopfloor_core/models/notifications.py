from django.db import models


class WorkerNotification(models.Model):
    KIND_ASSIGNMENT = "assignment"
    KIND_ACHIEVEMENT = "achievement"
    KIND_QUALITY = "quality"
    KIND_STALL = "stall"
    KIND_SYSTEM = "system"

    KIND_CHOICES = (
        (KIND_ASSIGNMENT, "Assignment"),
        (KIND_ACHIEVEMENT, "Achievement"),
        (KIND_QUALITY, "Quality"),
        (KIND_STALL, "Stalled batch"),
        (KIND_SYSTEM, "System"),
    )

    worker = models.ForeignKey(
        "shopfloor_core.Worker",
        on_delete=models.CASCADE,
        related_name="notifications",
    )
    kind = models.CharField(max_length=20, choices=KIND_CHOICES, default=KIND_SYSTEM)
    title = models.CharField(max_length=255)
    message = models.TextField(blank=True)
    data = models.JSONField(default=dict, blank=True)

    is_read = models.BooleanField(default=False)
    read_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ("-created_at", "-id")
        indexes = [
            models.Index(fields=["worker", "is_read"], name="shopfloor_c_worker__3b9d2e_idx"),
        ]

    def __str__(self):
        return f"{self.worker_id}: {self.title}"
