import logging
from typing import Any
from uuid import UUID

from arq import cron

from tvfees.core.database import SessionLocal
from tvfees.repositories.user_repository import UserRepository
from tvfees.services.event_service import EventService
from tvfees.services.wallet_ledger import WalletLedger
from tvfees.tasks import redis_settings

logger = logging.getLogger(__name__)


async def deliver_events_task(ctx: dict[str, Any]) -> int:
    """Background task: push pending payment and wallet events to the consumer endpoint.

    Runs every minute. Failed deliveries stay in the outbox until they run
    out of attempts.
    """
    db = SessionLocal()
    try:
        count = EventService(db).deliver_pending()
        if count > 0:
            logger.info("Delivered %d events", count)
        return count
    finally:
        db.close()


async def verify_wallet_task(ctx: dict[str, Any], user_id: str) -> bool:
    """Background task: check a user's cached balance against the ledger."""
    db = SessionLocal()
    try:
        user_uuid = UUID(user_id)
        if not UserRepository(db).get_by_id(user_uuid):
            logger.error("User %s not found for wallet verification", user_id)
            return False
        return WalletLedger(db).verify(user_uuid).consistent
    finally:
        db.close()


class WorkerSettings:
    functions = [deliver_events_task, verify_wallet_task]
    cron_jobs = [
        cron(deliver_events_task, second=0),  # every minute
    ]
    redis_settings = redis_settings
