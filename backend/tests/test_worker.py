"""Tests for worker background tasks and cron job registration."""

import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from tvfees.core import database as db_module
from tvfees.models.user import User
from tvfees.services.wallet_ledger import WalletLedger
from tvfees.tasks import enqueue_deliver_events, enqueue_verify_wallet
from tvfees.worker import WorkerSettings, deliver_events_task, verify_wallet_task


class TestDeliverEventsTask:
    @pytest.mark.asyncio
    async def test_returns_delivered_count(self):
        mock_service = MagicMock()
        mock_service.deliver_pending.return_value = 3

        with patch("tvfees.worker.EventService", return_value=mock_service) as mock_cls:
            result = await deliver_events_task({})

        assert result == 3
        mock_service.deliver_pending.assert_called_once()
        assert mock_cls.call_args[0][0] is not None

    @pytest.mark.asyncio
    async def test_closes_session_on_error(self):
        mock_db = MagicMock()
        mock_service = MagicMock()
        mock_service.deliver_pending.side_effect = RuntimeError("boom")

        with (
            patch("tvfees.worker.SessionLocal", return_value=mock_db),
            patch("tvfees.worker.EventService", return_value=mock_service),
            pytest.raises(RuntimeError),
        ):
            await deliver_events_task({})

        mock_db.close.assert_called_once()


class TestVerifyWalletTask:
    @pytest.mark.asyncio
    async def test_consistent_wallet(self, db_session, user, admin):
        WalletLedger(db_session).credit(user.id, Decimal("75"), actor=admin)

        with patch("tvfees.worker.SessionLocal", db_module.SessionLocal):
            assert await verify_wallet_task({}, str(user.id)) is True

    @pytest.mark.asyncio
    async def test_drifted_wallet(self, db_session, user, admin):
        WalletLedger(db_session).credit(user.id, Decimal("75"), actor=admin)
        db_session.query(User).filter(User.id == user.id).update(
            {User.wallet_balance: Decimal("80")}
        )
        db_session.commit()

        with patch("tvfees.worker.SessionLocal", db_module.SessionLocal):
            assert await verify_wallet_task({}, str(user.id)) is False

    @pytest.mark.asyncio
    async def test_unknown_user(self):
        with patch("tvfees.worker.SessionLocal", db_module.SessionLocal):
            assert await verify_wallet_task({}, str(uuid.uuid4())) is False


class TestEnqueue:
    @pytest.mark.asyncio
    async def test_enqueue_verify_wallet(self):
        mock_pool = MagicMock()
        mock_pool.enqueue_job = AsyncMock(return_value="job")
        mock_pool.close = AsyncMock()

        with patch("tvfees.tasks.create_pool", AsyncMock(return_value=mock_pool)):
            job = await enqueue_verify_wallet("abc")

        assert job == "job"
        mock_pool.enqueue_job.assert_awaited_once_with("verify_wallet_task", "abc")
        mock_pool.close.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_enqueue_deliver_events(self):
        mock_pool = MagicMock()
        mock_pool.enqueue_job = AsyncMock(return_value="job")
        mock_pool.close = AsyncMock()

        with patch("tvfees.tasks.create_pool", AsyncMock(return_value=mock_pool)):
            await enqueue_deliver_events()

        mock_pool.enqueue_job.assert_awaited_once_with("deliver_events_task")


class TestWorkerSettings:
    def test_functions_registered(self):
        assert deliver_events_task in WorkerSettings.functions
        assert verify_wallet_task in WorkerSettings.functions

    def test_cron_jobs(self):
        assert len(WorkerSettings.cron_jobs) == 1
        assert WorkerSettings.cron_jobs[0].coroutine is deliver_events_task
