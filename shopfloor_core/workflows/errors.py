# shopfloor_core/workflows/errors.py
"""
Typed failures raised by the production workflow and its supporting services.

Every error is a DRF APIException, so views let them propagate and the
project exception handler renders {"kind": ..., "detail": ...}.
"""
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import APIException


class WorkflowError(APIException):
    kind = "Internal"


class Unauthorized(WorkflowError):
    status_code = status.HTTP_401_UNAUTHORIZED
    default_detail = "No acting worker identity was provided."
    default_code = "unauthorized"
    kind = "Unauthorized"


class Forbidden(WorkflowError):
    status_code = status.HTTP_403_FORBIDDEN
    default_detail = "Your role does not allow this operation."
    default_code = "forbidden"
    kind = "Forbidden"


class NotFound(WorkflowError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = "Not found."
    default_code = "not_found"
    kind = "NotFound"


class InvalidTransition(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Transition is not allowed by the stage graph."
    default_code = "invalid_transition"
    kind = "InvalidTransition"


class UnknownStage(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Unknown production stage."
    default_code = "unknown_stage"
    kind = "UnknownStage"


class InactiveWorker(WorkflowError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = "Worker is not active."
    default_code = "inactive_worker"
    kind = "InactiveWorker"


class QualityGateNotSatisfied(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "A satisfying quality check is required for this transition."
    default_code = "quality_gate_not_satisfied"
    kind = "QualityGateNotSatisfied"


class Conflict(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "The record was modified concurrently."
    default_code = "conflict"
    kind = "Conflict"


class AssignmentConflict(WorkflowError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = "An open assignment already exists for this batch and stage."
    default_code = "assignment_conflict"
    kind = "AssignmentConflict"


class Internal(WorkflowError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = "Unexpected failure while applying the operation."
    default_code = "internal"
    kind = "Internal"
