from django.db import models

from shopfloor_core.workflows.guards import StageWriteGuardMixin


# ===============================================================
# Orders
# ===============================================================
class Order(models.Model):
    STATUS_PENDING = "pending"
    STATUS_IN_PRODUCTION = "in_production"
    STATUS_COMPLETED = "completed"
    STATUS_SHIPPED = "shipped"
    STATUS_ON_HOLD = "on_hold"

    STATUS_CHOICES = (
        (STATUS_PENDING, "Pending"),
        (STATUS_IN_PRODUCTION, "In production"),
        (STATUS_COMPLETED, "Completed"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_ON_HOLD, "On hold"),
    )

    order_number = models.CharField(max_length=64, unique=True)
    customer_name = models.CharField(max_length=255)
    model_name = models.CharField(max_length=255)
    wood_type = models.CharField(max_length=100, blank=True)
    status = models.CharField(max_length=20, choices=STATUS_CHOICES, default=STATUS_PENDING)
    notes = models.TextField(blank=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")

    def __str__(self):
        return f"{self.order_number} ({self.customer_name})"


# ===============================================================
# Batches
# ===============================================================
class Batch(StageWriteGuardMixin, models.Model):
    """
    A group of orders moving through production together.

    current_stage is guarded: it changes only through the transition
    workflow, which bumps `version` on every committed move.
    """

    PRIORITY_LOW = "low"
    PRIORITY_STANDARD = "standard"
    PRIORITY_HIGH = "high"
    PRIORITY_URGENT = "urgent"

    PRIORITY_CHOICES = (
        (PRIORITY_LOW, "Low"),
        (PRIORITY_STANDARD, "Standard"),
        (PRIORITY_HIGH, "High"),
        (PRIORITY_URGENT, "Urgent"),
    )

    # Pipeline sort rank, urgent first
    PRIORITY_RANK = {
        PRIORITY_URGENT: 0,
        PRIORITY_HIGH: 1,
        PRIORITY_STANDARD: 2,
        PRIORITY_LOW: 3,
    }

    QUALITY_GOOD = "good"
    QUALITY_HOLD = "hold"
    QUALITY_FAIL = "fail"

    QUALITY_CHOICES = (
        (QUALITY_GOOD, "Good"),
        (QUALITY_HOLD, "On hold"),
        (QUALITY_FAIL, "Failed"),
    )

    batch_number = models.CharField(max_length=32, unique=True)
    orders = models.ManyToManyField(
        Order,
        through="BatchOrder",
        related_name="batches",
    )

    current_stage = models.CharField(max_length=64, db_index=True)
    priority = models.CharField(max_length=20, choices=PRIORITY_CHOICES, default=PRIORITY_STANDARD)
    is_complete = models.BooleanField(default=False)
    quality_status = models.CharField(max_length=20, choices=QUALITY_CHOICES, default=QUALITY_GOOD)
    notes = models.TextField(blank=True)

    version = models.PositiveIntegerField(default=0)

    created_by = models.ForeignKey(
        "shopfloor_core.Worker",
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_batches",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("-created_at", "-id")
        verbose_name_plural = "batches"

    def __str__(self):
        return f"{self.batch_number} @ {self.current_stage}"

    @property
    def order_ids(self):
        # BatchOrder.Meta.ordering keeps position order, prefetched or not
        return [link.order_id for link in self.batch_orders.all()]


class BatchOrder(models.Model):
    batch = models.ForeignKey(Batch, on_delete=models.CASCADE, related_name="batch_orders")
    order = models.ForeignKey(Order, on_delete=models.PROTECT, related_name="batch_links")
    position = models.PositiveIntegerField(default=0)

    class Meta:
        ordering = ("position", "id")
        constraints = [
            models.UniqueConstraint(fields=["batch", "order"], name="uniq_batch_order"),
        ]

    def __str__(self):
        return f"{self.batch_id}#{self.position}: {self.order_id}"
