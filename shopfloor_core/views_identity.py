# shopfloor_core/views_identity.py
from __future__ import annotations

from rest_framework.permissions import AllowAny
from rest_framework.response import Response
from rest_framework.views import APIView

from .permissions import resolve_worker
from .workflows import MANAGE_ROLES, normalize_role


class WhoAmIView(APIView):
    """
    Returns the authenticated user, their worker profile and capabilities.

    Clients use it to confirm auth works and to decide whether to offer
    stage transitions.
    """
    permission_classes = [AllowAny]

    def get(self, request):
        worker = resolve_worker(request.user)
        role = normalize_role(worker.role)

        return Response(
            {
                "user_id": request.user.id,
                "username": request.user.get_username(),
                "worker": {
                    "id": worker.pk,
                    "name": worker.name,
                    "role": role,
                    "specializations": worker.specializations,
                },
                "can_manage_production": role in MANAGE_ROLES,
            }
        )
