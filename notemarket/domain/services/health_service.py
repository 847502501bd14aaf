"""
Health checks - dependency probes for the readiness endpoint

- liveness: the process is up (no dependency checks)
- readiness: database and Celery broker reachable
"""
from typing import Any

import redis.asyncio as aioredis
from sqlalchemy import text

from notemarket.core.config import settings
from notemarket.core.logging import get_logger
from notemarket.db.database import AsyncSessionLocal

logger = get_logger(__name__)

_STATUS_HEALTHY = "healthy"
_STATUS_DEGRADED = "degraded"

_CHECK_OK = "ok"

# infrastructure details are never echoed back to the caller
_ERROR_DB = "error: db_unavailable"
_ERROR_BROKER = "error: broker_unavailable"


async def _check_db() -> str:
    """Run a trivial query against the database"""
    try:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))
        return _CHECK_OK
    except Exception as e:
        logger.warning("Database health check failed", extra_data={"error": str(e)})
        return _ERROR_DB


async def _check_broker() -> str:
    """PING the Celery broker that runs reconciliation and expiry jobs"""
    try:
        client = aioredis.from_url(settings.CELERY_BROKER_URL, decode_responses=True)
        try:
            await client.ping()
            return _CHECK_OK
        finally:
            await client.aclose()
    except Exception as e:
        logger.warning("Broker health check failed", extra_data={"error": str(e)})
        return _ERROR_BROKER


async def check_readiness() -> dict[str, Any]:
    """
    Probe every dependency.

    status is "healthy" when all checks pass, "degraded" otherwise.
    """
    checks = {
        "db": await _check_db(),
        "broker": await _check_broker(),
    }

    all_ok = all(v == _CHECK_OK for v in checks.values())
    if not all_ok:
        logger.warning("Readiness check degraded", extra_data=checks)

    return {"status": _STATUS_HEALTHY if all_ok else _STATUS_DEGRADED, **checks}
