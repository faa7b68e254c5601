from __future__ import annotations

import logging

from django.conf import settings
from django.db import transaction

from shopfloor_core.workflows.graph import StageGraph, StageGraphError

from .models import StageGraphDefinition

logger = logging.getLogger(__name__)


def get_active_definition() -> StageGraphDefinition | None:
    return StageGraphDefinition.objects.filter(is_active=True).first()


def load_stage_graph() -> StageGraph:
    """
    Build the stage graph in force right now.

    Read on every call: activating a definition takes effect immediately
    and no batch decision is made against a stale graph.
    """
    active = get_active_definition()
    if active is not None:
        return active.build_graph()
    return StageGraph.from_definition(settings.PRODUCTION_STAGE_GRAPH)


def stranded_stages(graph: StageGraph) -> list[str]:
    """
    Stages of incomplete batches that the given graph does not define.
    """
    from shopfloor_core.models import Batch

    in_use = set(
        Batch.objects.filter(is_complete=False)
        .values_list("current_stage", flat=True)
        .distinct()
    )
    return sorted(s for s in in_use if not graph.has_stage(s))


def activate_definition(definition: StageGraphDefinition) -> StageGraphDefinition:
    """
    Make `definition` the single active stage graph.

    Refused when an incomplete batch sits in a stage the new graph lacks.
    """
    graph = definition.build_graph()

    missing = stranded_stages(graph)
    if missing:
        raise StageGraphError(
            "Cannot activate stage graph: batches are in stages it does not define: "
            + ", ".join(missing)
        )

    with transaction.atomic():
        StageGraphDefinition.objects.filter(is_active=True).exclude(pk=definition.pk).update(
            is_active=False
        )
        definition.is_active = True
        definition.save(update_fields=["is_active", "updated_at"])

    logger.info("Activated stage graph %s (%s)", definition.code, definition.version)
    return definition
