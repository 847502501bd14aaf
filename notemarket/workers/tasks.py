"""
Celery Tasks - periodic ledger maintenance

Each task runs the async services in a fresh event loop with its own
task-scoped database session.
"""
import asyncio
from contextlib import contextmanager

from notemarket.workers.celery_app import celery_app
from notemarket.db.database import get_task_session
from notemarket.domain.services.ledger_service import LedgerService
from notemarket.domain.services.subscription_service import SubscriptionService
from notemarket.core.logging import get_logger, set_correlation_id

logger = get_logger(__name__)


@contextmanager
def get_event_loop():
    """
    Context manager for proper event loop handling in Celery tasks.
    Creates a new event loop and ensures proper cleanup to prevent resource leaks.
    """
    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)
    try:
        yield loop
    finally:
        try:
            pending = asyncio.all_tasks(loop)
            for task in pending:
                task.cancel()
            if pending:
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        finally:
            loop.run_until_complete(loop.shutdown_asyncgens())
            loop.close()


def run_async(coro):
    """Helper to run async code in sync Celery task with proper cleanup"""
    # Set correlation ID for task tracking
    set_correlation_id()

    with get_event_loop() as loop:
        return loop.run_until_complete(coro)


@celery_app.task(name="notemarket.workers.tasks.reconcile_ledgers")
def reconcile_ledgers(limit: int = None):
    """
    Compare every stored balance with its ledger.
    Anomalies are logged at ERROR by the service; nothing is corrected.
    """

    async def _reconcile():
        async with get_task_session() as db:
            report = await LedgerService(db).reconcile_all(limit=limit)
            return {"checked": report["checked"], "anomalies": len(report["anomalies"])}

    return run_async(_reconcile())


@celery_app.task(name="notemarket.workers.tasks.expire_subscriptions")
def expire_subscriptions():
    """Clear is_active on PLUS subscriptions past their end date"""

    async def _expire():
        async with get_task_session() as db:
            count = await SubscriptionService(db).expire_subscriptions()
            return {"expired": count}

    return run_async(_expire())
