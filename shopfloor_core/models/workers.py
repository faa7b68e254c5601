from django.conf import settings
from django.db import models


class Worker(models.Model):
    """
    Canonical shop-floor identity.

    Every authenticated actor (including superusers) operates through a
    Worker row; the auth user only proves who is calling.
    """

    ROLE_WORKER = "worker"
    ROLE_MANAGER = "manager"
    ROLE_ADMIN = "admin"

    ROLE_CHOICES = (
        (ROLE_WORKER, "Worker"),
        (ROLE_MANAGER, "Manager"),
        (ROLE_ADMIN, "Admin"),
    )

    APPROVAL_PENDING = "pending"
    APPROVAL_APPROVED = "approved"
    APPROVAL_REJECTED = "rejected"

    APPROVAL_CHOICES = (
        (APPROVAL_PENDING, "Pending"),
        (APPROVAL_APPROVED, "Approved"),
        (APPROVAL_REJECTED, "Rejected"),
    )

    user = models.OneToOneField(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="worker_profile",
    )

    name = models.CharField(max_length=255)
    email = models.EmailField(blank=True)
    role = models.CharField(max_length=20, choices=ROLE_CHOICES, default=ROLE_WORKER)

    # Stage codes the worker is trained for
    specializations = models.JSONField(default=list, blank=True)

    is_active = models.BooleanField(default=True)
    approval_status = models.CharField(
        max_length=20,
        choices=APPROVAL_CHOICES,
        default=APPROVAL_PENDING,
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ("name", "id")
        indexes = [
            models.Index(fields=["role", "is_active"], name="shopfloor_c_role_4c1f0e_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.role})"

    @property
    def is_approved(self) -> bool:
        return self.approval_status == self.APPROVAL_APPROVED
