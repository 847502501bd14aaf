"""
Tests for Celery workers - notemarket/workers/tasks.py

Covers:
- event loop handling for sync Celery tasks
- ledger reconciliation task
- subscription expiry task
- beat schedule wiring
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from notemarket.workers.celery_app import celery_app


def _patch_task_session():
    """get_task_session replacement yielding a dummy session"""
    session_ctx = MagicMock()
    session_ctx.return_value.__aenter__ = AsyncMock(return_value=MagicMock())
    session_ctx.return_value.__aexit__ = AsyncMock(return_value=None)
    return patch("notemarket.workers.tasks.get_task_session", session_ctx)


class TestEventLoopManagement:

    @pytest.mark.unit
    def test_get_event_loop_creates_and_closes(self) -> None:
        from notemarket.workers.tasks import get_event_loop

        with get_event_loop() as loop:
            assert loop is not None
            assert loop.is_running() is False

        assert loop.is_closed()

    @pytest.mark.unit
    def test_run_async_executes_coroutine(self) -> None:
        from notemarket.workers.tasks import run_async

        async def _coro():
            return 42

        assert run_async(_coro()) == 42

    @pytest.mark.unit
    def test_run_async_sets_correlation_id(self) -> None:
        from notemarket.core.logging import correlation_id_var
        from notemarket.workers.tasks import run_async

        async def _coro():
            return correlation_id_var.get()

        assert len(run_async(_coro())) == 8


class TestReconcileLedgersTask:

    @pytest.mark.unit
    def test_returns_counts(self) -> None:
        from notemarket.workers.tasks import reconcile_ledgers

        report = {
            "checked": 12,
            "anomalies": [
                {"account_id": 4, "stored_balance": 10, "ledger_balance": 0, "difference": 10},
            ],
        }
        with _patch_task_session(), patch("notemarket.workers.tasks.LedgerService") as service_cls:
            service_cls.return_value.reconcile_all = AsyncMock(return_value=report)

            result = reconcile_ledgers(limit=50)

        assert result == {"checked": 12, "anomalies": 1}
        service_cls.return_value.reconcile_all.assert_awaited_once_with(limit=50)


class TestExpireSubscriptionsTask:

    @pytest.mark.unit
    def test_returns_expired_count(self) -> None:
        from notemarket.workers.tasks import expire_subscriptions

        with _patch_task_session(), patch(
            "notemarket.workers.tasks.SubscriptionService"
        ) as service_cls:
            service_cls.return_value.expire_subscriptions = AsyncMock(return_value=3)

            result = expire_subscriptions()

        assert result == {"expired": 3}


class TestBeatSchedule:

    @pytest.mark.unit
    def test_periodic_tasks_registered(self) -> None:
        schedule = celery_app.conf.beat_schedule

        assert schedule["reconcile-ledgers-hourly"]["task"] == "notemarket.workers.tasks.reconcile_ledgers"
        assert schedule["reconcile-ledgers-hourly"]["schedule"] == 3600.0
        assert schedule["expire-subscriptions-every-15-minutes"]["task"] == (
            "notemarket.workers.tasks.expire_subscriptions"
        )

    @pytest.mark.unit
    def test_tasks_are_known_to_the_app(self) -> None:
        import notemarket.workers.tasks  # noqa: F401

        assert "notemarket.workers.tasks.reconcile_ledgers" in celery_app.tasks
        assert "notemarket.workers.tasks.expire_subscriptions" in celery_app.tasks
