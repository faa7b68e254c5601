# shopfloor_core/workflows/graph.py
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from typing import Any, Dict, List, Mapping, Optional, Tuple

"""
Production stage graph.

PURE LOGIC + DATA:
- No Django imports
- A definition is validated once, in StageGraph.from_definition
- Everything downstream (executor, views, scanners) trusts a built graph
"""


class StageGraphError(ValueError):
    pass


def normalize_stage(value: Any) -> str:
    raw = str(value or "").strip().lower()
    return raw.replace("-", "_").replace(" ", "_")


@dataclass(frozen=True)
class Stage:
    code: str
    name: str
    terminal: bool = False
    warn_after: Optional[timedelta] = None
    breach_after: Optional[timedelta] = None
    checklist: Tuple[Dict[str, Any], ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class Edge:
    source: str
    target: str
    requires_quality_gate: bool = False


def _hours(raw: Any, *, stage: str, key: str) -> Optional[timedelta]:
    if raw is None:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        raise StageGraphError(f"Stage '{stage}': {key} must be a number of hours.")
    if value <= 0:
        raise StageGraphError(f"Stage '{stage}': {key} must be positive.")
    return timedelta(hours=value)


class StageGraph:
    """
    Immutable, validated stage graph.

    Stages keep their declared order, which is also the display order of
    the production pipeline.
    """

    def __init__(self, *, initial: str, stages: List[Stage], edges: List[Edge]):
        self.initial = initial
        self._stages: Dict[str, Stage] = {s.code: s for s in stages}
        self._order: List[str] = [s.code for s in stages]
        self._edges: Dict[Tuple[str, str], Edge] = {(e.source, e.target): e for e in edges}
        self._outgoing: Dict[str, List[str]] = {code: [] for code in self._order}
        for e in edges:
            self._outgoing[e.source].append(e.target)

    # ---------------------------------------------------------
    # Construction
    # ---------------------------------------------------------
    @classmethod
    def from_definition(cls, definition: Mapping[str, Any]) -> "StageGraph":
        if not isinstance(definition, Mapping):
            raise StageGraphError("Stage graph definition must be an object.")

        raw_stages = definition.get("stages")
        raw_edges = definition.get("transitions")
        if not isinstance(raw_stages, list) or not raw_stages:
            raise StageGraphError("stages must be a non-empty list.")
        if not isinstance(raw_edges, list):
            raise StageGraphError("transitions must be a list.")

        stages: List[Stage] = []
        seen = set()
        for raw in raw_stages:
            if not isinstance(raw, Mapping):
                raise StageGraphError("Each stage must be an object.")
            code = normalize_stage(raw.get("code"))
            if not code:
                raise StageGraphError("Each stage must have a non-empty code.")
            if code in seen:
                raise StageGraphError(f"Duplicate stage code: {code}.")
            seen.add(code)

            warn = _hours(raw.get("warn_after_hours"), stage=code, key="warn_after_hours")
            breach = _hours(raw.get("breach_after_hours"), stage=code, key="breach_after_hours")
            if warn and breach and warn > breach:
                raise StageGraphError(f"Stage '{code}': warn_after_hours exceeds breach_after_hours.")

            checklist = raw.get("checklist") or []
            if not isinstance(checklist, list):
                raise StageGraphError(f"Stage '{code}': checklist must be a list.")

            stages.append(
                Stage(
                    code=code,
                    name=str(raw.get("name") or code.replace("_", " ").title()),
                    terminal=bool(raw.get("terminal", False)),
                    warn_after=warn,
                    breach_after=breach,
                    checklist=tuple(dict(item) for item in checklist),
                )
            )

        initial = normalize_stage(definition.get("initial") or stages[0].code)
        if initial not in seen:
            raise StageGraphError(f"Initial stage '{initial}' is not a declared stage.")

        terminal = {s.code for s in stages if s.terminal}
        if not terminal:
            raise StageGraphError("At least one stage must be terminal.")
        if initial in terminal:
            raise StageGraphError("The initial stage cannot be terminal.")

        edges: List[Edge] = []
        pairs = set()
        for raw in raw_edges:
            if not isinstance(raw, Mapping):
                raise StageGraphError("Each transition must be an object.")
            src = normalize_stage(raw.get("from"))
            dst = normalize_stage(raw.get("to"))
            if src not in seen or dst not in seen:
                raise StageGraphError(f"Transition references unknown stage: {src} -> {dst}.")
            if src == dst:
                raise StageGraphError(f"Self-transition is not allowed: {src}.")
            if src in terminal:
                raise StageGraphError(f"Terminal stage '{src}' cannot have outgoing transitions.")
            if (src, dst) in pairs:
                raise StageGraphError(f"Duplicate transition: {src} -> {dst}.")
            pairs.add((src, dst))
            edges.append(
                Edge(
                    source=src,
                    target=dst,
                    requires_quality_gate=bool(raw.get("requires_quality_gate", False)),
                )
            )

        return cls(initial=initial, stages=stages, edges=edges)

    # ---------------------------------------------------------
    # Queries
    # ---------------------------------------------------------
    @property
    def stage_codes(self) -> List[str]:
        return list(self._order)

    @property
    def terminal_stages(self) -> List[str]:
        return [c for c in self._order if self._stages[c].terminal]

    def has_stage(self, code: Any) -> bool:
        return normalize_stage(code) in self._stages

    def stage(self, code: Any) -> Stage:
        return self._stages[normalize_stage(code)]

    def is_terminal(self, code: Any) -> bool:
        s = self._stages.get(normalize_stage(code))
        return bool(s and s.terminal)

    def edge(self, current: Any, target: Any) -> Optional[Edge]:
        return self._edges.get((normalize_stage(current), normalize_stage(target)))

    def next_stages(self, current: Any) -> List[str]:
        return list(self._outgoing.get(normalize_stage(current), []))

    def position(self, code: Any) -> int:
        return self._order.index(normalize_stage(code))

    def to_definition(self) -> Dict[str, Any]:
        """
        Stable JSON-serializable form; from_definition(to_definition()) rebuilds
        an equivalent graph.
        """
        def _stage(s: Stage) -> Dict[str, Any]:
            out: Dict[str, Any] = {"code": s.code, "name": s.name}
            if s.terminal:
                out["terminal"] = True
            if s.warn_after is not None:
                out["warn_after_hours"] = s.warn_after.total_seconds() / 3600
            if s.breach_after is not None:
                out["breach_after_hours"] = s.breach_after.total_seconds() / 3600
            if s.checklist:
                out["checklist"] = [dict(i) for i in s.checklist]
            return out

        return {
            "initial": self.initial,
            "stages": [_stage(self._stages[c]) for c in self._order],
            "transitions": [
                {
                    "from": e.source,
                    "to": e.target,
                    "requires_quality_gate": e.requires_quality_gate,
                }
                for e in self._edges.values()
            ],
        }
