"""
Celery periodic task: retract delivered media whose 15-minute window has passed.
"""
import logging

from nightpass.core.celery_app import celery_app
from nightpass.core.config import settings
from nightpass.core.errors import StoreUnavailable
from nightpass.db.session import SessionLocal
from nightpass.services.delivery.service import DeliveryScheduler
from nightpass.services.grants.service import GrantStore
from nightpass.services.telegram.client import TelegramClient, TelegramSink

logger = logging.getLogger(__name__)


@celery_app.task(name="nightpass.workers.tasks.retractions.sweep_due_retractions")
def sweep_due_retractions() -> dict:
    """Claim and process due retractions; each row is handled by exactly one sweep."""
    db = SessionLocal()
    telegram = TelegramClient()
    try:
        scheduler = DeliveryScheduler(db, TelegramSink(telegram), GrantStore(db))
        processed = scheduler.sweep_due(limit=settings.retraction_sweep_batch_size)
        return {"processed": processed}
    except StoreUnavailable:
        logger.exception("sweep_due_retractions_error")
        return {"processed": 0, "error": "store_unavailable"}
    finally:
        db.close()
        telegram.close()
