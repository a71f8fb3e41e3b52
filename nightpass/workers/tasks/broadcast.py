"""
Mass broadcast to tracked bot users via Telegram.
Respects rate limits; one failed recipient never stops the loop.
"""
import logging
import time
from datetime import datetime, timezone

from sqlalchemy.orm import Session

from nightpass.core.celery_app import celery_app
from nightpass.core.config import settings
from nightpass.db.session import SessionLocal
from nightpass.models.broadcast import Broadcast
from nightpass.services.delivery.base import OutboundMessage, Sink
from nightpass.services.telegram.client import TelegramClient, TelegramSink
from nightpass.services.users.service import UserService

logger = logging.getLogger("broadcast")

MAX_MESSAGE_LENGTH = 4096


def run_broadcast(db: Session, sink: Sink, message_text: str, delay_seconds: float = 0.0) -> dict:
    if not message_text or not message_text.strip():
        return {"sent": 0, "failed": 0, "total": 0, "error": "empty_message"}

    text = message_text.strip()
    if len(text) > MAX_MESSAGE_LENGTH:
        return {"sent": 0, "failed": 0, "total": 0, "error": "message_too_long"}

    recipients = UserService(db).list_recipient_ids()
    record = Broadcast(message=text, total_users=len(recipients))
    db.add(record)
    db.commit()

    sent = 0
    failed = 0
    payload = OutboundMessage(kind="text", text=text)
    for i, telegram_id in enumerate(recipients):
        try:
            sink.emit(telegram_id, payload)
            sent += 1
            if (i + 1) % 50 == 0:
                logger.info("broadcast_progress", extra={"sent": sent, "total": len(recipients)})
        except Exception as e:
            failed += 1
            logger.warning("broadcast_fail", extra={"user_id": telegram_id, "error": str(e)})

        if delay_seconds and i < len(recipients) - 1:
            time.sleep(delay_seconds)

    record.sent = sent
    record.failed = failed
    record.completed_at = datetime.now(timezone.utc)
    db.add(record)
    db.commit()

    result = {"sent": sent, "failed": failed, "total": len(recipients), "broadcast_id": record.id}
    logger.info("broadcast_completed", extra=result)
    return result


@celery_app.task(bind=True, name="nightpass.workers.tasks.broadcast.broadcast_message")
def broadcast_message(self, message_text: str) -> dict:
    """Send message to all tracked users."""
    db: Session = SessionLocal()
    telegram = TelegramClient()
    try:
        return run_broadcast(db, TelegramSink(telegram), message_text, settings.broadcast_delay_seconds)
    finally:
        db.close()
        telegram.close()
