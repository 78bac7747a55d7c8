"""
Infrastructure views: the health check and the DRF exception handler.
"""

import logging

from channels.layers import get_channel_layer
from django.db import connection
from django.http import JsonResponse
from rest_framework.response import Response
from rest_framework.views import exception_handler

from core.exceptions import BaseApplicationError

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for container health checks and load balancers.

    Returns:
        JsonResponse with status and component health:
        - status: "healthy" or "unhealthy"
        - database: "connected" or "disconnected"
        - channel_layer: "configured" or "missing"

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "channel_layer": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except Exception:
        logger.exception("Health check could not reach the database")
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    # Without a channel layer live updates are silently dropped; report it
    # but keep serving REST traffic.
    health_status["channel_layer"] = "configured" if get_channel_layer() else "missing"

    status_code = 200 if is_healthy else 503
    return JsonResponse(health_status, status=status_code)


def api_exception_handler(exc, context):
    """
    DRF exception handler.

    - BaseApplicationError renders its own body and status code
    - DRF exceptions (validation, authentication, 404) use DRF's defaults
    - anything else is logged with the view context and returned as a
      generic 500 so no internal detail leaks to the client
    """
    if isinstance(exc, BaseApplicationError):
        return Response(exc.to_dict(), status=exc.status_code)

    response = exception_handler(exc, context)
    if response is not None:
        return response

    view = context.get("view")
    logger.exception(
        "Unhandled error in %s",
        view.__class__.__name__ if view is not None else "unknown view",
    )
    return Response(
        {"error": "Internal server error", "error_code": "INTERNAL_ERROR"},
        status=500,
    )
