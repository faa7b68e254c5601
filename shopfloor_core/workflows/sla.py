# shopfloor_core/workflows/sla.py
from __future__ import annotations

from datetime import timedelta
from typing import Any, Dict, Optional

from .graph import Stage

"""
Stage dwell thresholds.

This module is PURE LOGIC.
- Thresholds come from the stage graph (warn_after_hours / breach_after_hours)
- A stage without thresholds has no dwell limit
- UI and API consume the computed status, not raw thresholds
"""

DWELL_OK = "ok"
DWELL_WARNING = "warning"
DWELL_BREACH = "breach"
DWELL_NONE = "n/a"


def get_thresholds(stage: Stage) -> Optional[Dict[str, Any]]:
    """
    Returns {"warn_after": timedelta|None, "breach_after": timedelta|None}
    or None if the stage has no thresholds at all.
    """
    if stage.warn_after is None and stage.breach_after is None:
        return None
    return {"warn_after": stage.warn_after, "breach_after": stage.breach_after}


def evaluate_dwell(stage: Stage, age: timedelta) -> str:
    thresholds = get_thresholds(stage)
    if not thresholds:
        return DWELL_NONE

    breach = thresholds["breach_after"]
    warn = thresholds["warn_after"]

    if breach is not None and age >= breach:
        return DWELL_BREACH
    if warn is not None and age >= warn:
        return DWELL_WARNING
    return DWELL_OK


def threshold_for(stage: Stage, status: str) -> Optional[timedelta]:
    if status == DWELL_BREACH:
        return stage.breach_after
    if status == DWELL_WARNING:
        return stage.warn_after
    return None
