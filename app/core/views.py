"""
Core views providing infrastructure endpoints and API error mapping.

- health_check: liveness/readiness endpoint for orchestration
- ApplicationErrorMixin: turns service-layer exceptions into DRF responses
"""

from __future__ import annotations

import logging

from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for monitoring and orchestration.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - cache: "connected" or "disconnected"

    HTTP Status Codes:
        200: All systems operational
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        from django.core.cache import cache

        cache.set("health_check", "ok", timeout=1)
        if cache.get("health_check") == "ok":
            health_status["cache"] = "connected"
        else:
            health_status["cache"] = "disconnected"
    except Exception:
        # Cache is not critical for money movement
        health_status["cache"] = "disconnected"

    status_code = 200 if is_healthy else 503

    return JsonResponse(health_status, status=status_code)


class ApplicationErrorMixin:
    """
    Map BaseApplicationError raised by services to JSON responses.

    Mix into any APIView. Services raise typed errors; this hook renders
    ``error.to_dict()`` with ``error.http_status``. Everything else falls
    through to DRF's own handling.

    Usage:
        class AdminReleaseView(ApplicationErrorMixin, APIView):
            def post(self, request, payment_id):
                outcome = ResolutionService.admin_release(payment_id, request.user)
                ...
    """

    def handle_exception(self, exc):
        if isinstance(exc, BaseApplicationError):
            log = logger.warning if exc.http_status < 500 else logger.error
            log(
                f"Request failed: {exc}",
                extra={
                    "error_code": exc.error_code,
                    "http_status": exc.http_status,
                    "path": getattr(self.request, "path", None),
                },
            )
            return Response(exc.to_dict(), status=exc.http_status)
        return super().handle_exception(exc)
