from __future__ import annotations

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from shopfloor_core.workflows.graph import StageGraph, StageGraphError


class StageGraphDefinition(models.Model):
    """
    Stored production stage graph. At most one row is active; without an
    active row the graph in settings.PRODUCTION_STAGE_GRAPH applies.
    """

    code = models.SlugField(max_length=80)
    name = models.CharField(max_length=255)
    version = models.CharField(max_length=30, default="v1")
    description = models.TextField(blank=True)

    definition = models.JSONField(default=dict, blank=True)

    is_active = models.BooleanField(default=False)

    is_locked = models.BooleanField(default=False)
    locked_at = models.DateTimeField(null=True, blank=True)
    locked_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="locked_stage_graphs",
    )
    lock_reason = models.CharField(max_length=255, blank=True)

    created_at = models.DateTimeField(default=timezone.now)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        app_label = "shopfloor_core"
        ordering = ("code", "version")
        constraints = [
            models.UniqueConstraint(fields=["code", "version"], name="uniq_stage_graph_code_version"),
            models.UniqueConstraint(
                fields=["is_active"],
                condition=Q(is_active=True),
                name="single_active_stage_graph",
            ),
        ]

    def __str__(self) -> str:
        return f"{self.code} ({self.version}){' [active]' if self.is_active else ''}"

    def build_graph(self) -> StageGraph:
        return StageGraph.from_definition(self.definition or {})

    def clean(self):
        try:
            graph = self.build_graph()
        except StageGraphError as e:
            raise ValidationError({"definition": str(e)})

        if self.is_active:
            from .services import stranded_stages

            missing = stranded_stages(graph)
            if missing:
                raise ValidationError(
                    {"definition": "Batches are in stages this graph does not define: " + ", ".join(missing)}
                )

        if self.is_locked and self.pk:
            stored = (
                StageGraphDefinition.objects.filter(pk=self.pk)
                .values_list("definition", flat=True)
                .first()
            )
            if stored is not None and stored != self.definition:
                raise ValidationError({"definition": "Locked stage graphs cannot be edited."})

    def lock(self, user=None, reason: str = ""):
        self.is_locked = True
        self.locked_at = timezone.now()
        if user is not None:
            self.locked_by = user
        if reason:
            self.lock_reason = reason
