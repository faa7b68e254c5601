# shopfloor_core/exceptions.py
from __future__ import annotations

from rest_framework import status
from rest_framework.exceptions import ValidationError
from rest_framework.views import exception_handler


_KIND_BY_STATUS = {
    status.HTTP_400_BAD_REQUEST: "ValidationError",
    status.HTTP_401_UNAUTHORIZED: "Unauthorized",
    status.HTTP_403_FORBIDDEN: "Forbidden",
    status.HTTP_404_NOT_FOUND: "NotFound",
    status.HTTP_405_METHOD_NOT_ALLOWED: "MethodNotAllowed",
    status.HTTP_409_CONFLICT: "Conflict",
    status.HTTP_500_INTERNAL_SERVER_ERROR: "Internal",
}


def api_exception_handler(exc, context):
    """
    DRF's handler plus a stable "kind" field:

        {"kind": "InvalidTransition", "detail": "..."}

    Validation errors keep their field mapping under "detail".
    """
    response = exception_handler(exc, context)
    if response is None:
        return None

    kind = getattr(exc, "kind", None)
    if not kind:
        if isinstance(exc, ValidationError):
            kind = "ValidationError"
        else:
            kind = _KIND_BY_STATUS.get(response.status_code, "Error")

    data = response.data
    if isinstance(data, dict) and set(data.keys()) == {"detail"}:
        detail = data["detail"]
    else:
        detail = data

    response.data = {"kind": kind, "detail": detail}
    return response
