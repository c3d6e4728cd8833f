"""
Infrastructure endpoints.

GET /health/ reports database and cache connectivity for load balancers
and container health checks. It is unauthenticated and does not touch payment
data.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def _database_ok() -> bool:
    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
    except DatabaseError:
        logger.exception("Health check: database unreachable")
        return False
    return True


def _cache_ok() -> bool:
    try:
        cache.set("health_check", "ok", timeout=5)
        return cache.get("health_check") == "ok"
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        return False


def health_check(request):
    """
    Report component health.

    Returns:
        200 {"status": "healthy", "database": "connected", "cache": ...}
        503 when the database is down. A cache outage is reported but
        does not fail the check; idempotency and locking live in the
        database.
    """
    database = _database_ok()
    cache_connected = _cache_ok()

    body = {
        "status": "healthy" if database else "unhealthy",
        "database": "connected" if database else "disconnected",
        "cache": "connected" if cache_connected else "disconnected",
    }
    return JsonResponse(body, status=200 if database else 503)
