from .workers import Worker
from .production import Order, Batch, BatchOrder
from .quality import QualityCheck
from .assignments import StageAssignment
from .audit import AuditLogEntry
from .notifications import WorkerNotification
from .stage_alert import StageAlert
from shopfloor_core.config.models import StageGraphDefinition

__all__ = [
    "Worker",
    "Order",
    "Batch",
    "BatchOrder",
    "QualityCheck",
    "StageAssignment",
    "AuditLogEntry",
    "WorkerNotification",
    "StageAlert",
    "StageGraphDefinition",
]
