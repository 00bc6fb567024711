"""
Infrastructure endpoints that sit outside the business API.
"""

import logging

from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Liveness/readiness probe for the load balancer and container runtime.

    Only the database is treated as critical. The payment flow cannot
    record charges without it, while the token cache degrades to per-request
    credential exchanges.

    Returns:
        200 ``{"status": "healthy", "database": "connected"}`` or
        503 with ``"unhealthy"`` / ``"disconnected"``.
    """
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check database probe failed")
        return JsonResponse(
            {"status": "unhealthy", "database": "disconnected"}, status=503
        )
    return JsonResponse({"status": "healthy", "database": "connected"})
