from __future__ import annotations

from typing import Any, Dict

from shopfloor_core.workflows.graph import StageGraph, StageGraphError

from .models import StageGraphDefinition
from .services import stranded_stages


def definition_to_dict(definition: StageGraphDefinition) -> Dict[str, Any]:
    return {
        "code": definition.code,
        "name": definition.name,
        "version": definition.version,
        "description": definition.description,
        "is_active": definition.is_active,
        "definition": definition.build_graph().to_definition(),
    }


def graph_to_dict(graph: StageGraph, *, code: str = "default", name: str = "Default stage graph") -> Dict[str, Any]:
    return {
        "code": code,
        "name": name,
        "version": "v1",
        "description": "",
        "is_active": False,
        "definition": graph.to_definition(),
    }


def upsert_definition_from_dict(payload: Dict[str, Any]) -> StageGraphDefinition:
    """
    Create or replace the (code, version) row. The graph is validated before
    anything is written; activation is a separate step. Replacing the active
    row is refused while incomplete batches sit in stages the new graph lacks.
    """
    graph = StageGraph.from_definition(payload.get("definition") or {})

    code = payload["code"]
    version = payload.get("version", "v1")

    existing = StageGraphDefinition.objects.filter(code=code, version=version).first()
    if existing is not None and existing.is_locked:
        raise ValueError(f"Stage graph {code} ({version}) is locked.")

    if existing is not None and existing.is_active:
        missing = stranded_stages(graph)
        if missing:
            raise StageGraphError(
                f"Cannot replace active stage graph {code} ({version}): "
                "batches are in stages it does not define: " + ", ".join(missing)
            )

    obj, _ = StageGraphDefinition.objects.update_or_create(
        code=code,
        version=version,
        defaults={
            "name": payload.get("name", code),
            "description": payload.get("description", ""),
            "definition": graph.to_definition(),
        },
    )
    return obj
