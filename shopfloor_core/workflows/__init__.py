# shopfloor_core/workflows/__init__.py
from __future__ import annotations

from typing import Any, Dict, FrozenSet, List, Optional

from .graph import Edge, Stage, StageGraph, StageGraphError, normalize_stage


# ===============================================================
# Roles
# ===============================================================

ROLE_WORKER = "worker"
ROLE_MANAGER = "manager"
ROLE_ADMIN = "admin"

ALL_ROLES: FrozenSet[str] = frozenset({ROLE_WORKER, ROLE_MANAGER, ROLE_ADMIN})

# Roles holding the production management capability:
# stage transitions, batch creation, worker assignment.
MANAGE_ROLES: FrozenSet[str] = frozenset({ROLE_MANAGER, ROLE_ADMIN})

ROLE_ALIASES: Dict[str, str] = {
    "ADMIN": ROLE_ADMIN,
    "SYSTEM_ADMIN": ROLE_ADMIN,
    "SUPERUSER": ROLE_ADMIN,
    "MANAGER": ROLE_MANAGER,
    "PRODUCTION_MANAGER": ROLE_MANAGER,
    "SUPERVISOR": ROLE_MANAGER,
    "WORKER": ROLE_WORKER,
    "EMPLOYEE": ROLE_WORKER,
    "TECHNICIAN": ROLE_WORKER,
    "OPERATOR": ROLE_WORKER,
}


def normalize_role(value: Any) -> str:
    raw = str(value or "").strip().upper()
    return ROLE_ALIASES.get(raw, raw.lower() or ROLE_WORKER)


def role_allows(role: Any, allowed: Optional[FrozenSet[str]] = None) -> bool:
    """
    Single capability rule. allowed=None means any known role.
    """
    r = normalize_role(role)
    if r not in ALL_ROLES:
        return False
    if allowed is None:
        return True
    return r in {normalize_role(a) for a in allowed}


# ===============================================================
# Public workflow API (graph-aware)
# ===============================================================

def _graph(graph: Optional[StageGraph]) -> StageGraph:
    if graph is not None:
        return graph
    from shopfloor_core.config.services import load_stage_graph

    return load_stage_graph()


def validate_transition(
    current: str,
    target: str,
    graph: Optional[StageGraph] = None,
) -> Edge:
    """
    Raises ValueError if current -> target is not an edge of the stage graph.
    Returns the edge otherwise.
    """
    g = _graph(graph)
    cur = normalize_stage(current)
    tgt = normalize_stage(target)

    if not g.has_stage(cur):
        raise ValueError(f"Unknown stage: {cur}")
    if not g.has_stage(tgt):
        raise ValueError(f"Unknown stage: {tgt}")

    edge = g.edge(cur, tgt)
    if edge is None:
        raise ValueError(f"Invalid stage transition: {cur} -> {tgt}")
    return edge


def allowed_next_stages(current: str, graph: Optional[StageGraph] = None) -> List[str]:
    """
    Graph edges out of a stage, independent of role.
    """
    return _graph(graph).next_stages(current)


def allowed_transitions(
    current: str,
    role: Optional[str] = None,
    graph: Optional[StageGraph] = None,
) -> List[str]:
    """
    Role-aware next stages. Roles without the management capability get [].
    """
    nxt = allowed_next_stages(current, graph)
    if role is None:
        return nxt
    if not role_allows(role, MANAGE_ROLES):
        return []
    return nxt


def requires_quality_gate(current: str, target: str, graph: Optional[StageGraph] = None) -> bool:
    edge = _graph(graph).edge(current, target)
    return bool(edge and edge.requires_quality_gate)


def workflow_definition(graph: Optional[StageGraph] = None) -> Dict[str, Any]:
    """
    Stable JSON-serializable definition for clients.
    """
    g = _graph(graph)
    return {
        "initial": g.initial,
        "stages": [
            {
                "code": code,
                "name": g.stage(code).name,
                "terminal": g.stage(code).terminal,
                "next": g.next_stages(code),
            }
            for code in g.stage_codes
        ],
        "transitions": g.to_definition()["transitions"],
        "required_roles": sorted(MANAGE_ROLES),
    }


__all__ = [
    "ROLE_WORKER",
    "ROLE_MANAGER",
    "ROLE_ADMIN",
    "ALL_ROLES",
    "MANAGE_ROLES",
    "ROLE_ALIASES",
    "Edge",
    "Stage",
    "StageGraph",
    "StageGraphError",
    "normalize_stage",
    "normalize_role",
    "role_allows",
    "validate_transition",
    "allowed_next_stages",
    "allowed_transitions",
    "requires_quality_gate",
    "workflow_definition",
]
