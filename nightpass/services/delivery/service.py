"""
DeliveryScheduler: sends an album as self-destructing messages.

Every emitted message gets its own ScheduledRetraction row (due = now + delay).
sweep_due() claims due rows with a conditional UPDATE, so each row is retracted
and followed by one "content cleaned" notice exactly once, whichever worker
gets there first. Rows survive restarts; a message whose row could not be
written is never retracted (logged as retraction_schedule_failed).
"""
from __future__ import annotations

import logging

from pydantic import BaseModel
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.access.config import get_retraction_delay_seconds
from nightpass.access.keyboard import build_cleaned_markup, build_content_markup
from nightpass.access.models import AlbumView
from nightpass.core.clock import Clock, now_ms
from nightpass.core.errors import MessageNotFound, SinkError, StoreUnavailable
from nightpass.models.scheduled_retraction import ScheduledRetraction
from nightpass.services.delivery.base import OutboundMessage, Sink
from nightpass.services.grants.service import GrantStore
from nightpass.utils.metrics import media_deliveries_total, retractions_total

logger = logging.getLogger(__name__)

CONTENT_CAPTION = (
    "This exclusive content will disappear in {minutes}min - enjoy every moment, {name}! 🌹\n\n"
    "-----_:(🍌):_----"
)
CLEANED_TEXT = (
    "✨ *Content cleaned, tap watch again if you like* 😉\n\n"
    "⭐ *Your pass still works!*\n"
    "⏰ *Time left:* {time_left}"
)


class DeliveryReport(BaseModel):
    sent: int = 0
    failed: int = 0
    scheduled: int = 0
    message_refs: list[int] = []


class DeliveryScheduler:
    def __init__(
        self,
        db: Session,
        sink: Sink,
        grants: GrantStore,
        clock: Clock = now_ms,
        delay_seconds: int | None = None,
        more_url: str | None = None,
    ):
        self.db = db
        self.sink = sink
        self.grants = grants
        self._clock = clock
        self.delay_seconds = delay_seconds if delay_seconds is not None else get_retraction_delay_seconds()
        self.more_url = more_url

    def deliver(self, destination: str, album: AlbumView, owner_display_name: str | None = None) -> DeliveryReport:
        """Emit each item of the album; a failed item does not stop the rest."""
        destination = str(destination)
        report = DeliveryReport()
        caption = CONTENT_CAPTION.format(
            minutes=max(1, self.delay_seconds // 60),
            name=owner_display_name or "friend",
        )
        markup = build_content_markup(album.hash, more_url=self.more_url)

        for entry in album.media:
            payload = OutboundMessage(
                kind=entry.type,
                file_ref=entry.file_ref,
                text=caption,
                reply_markup=markup,
                protect_content=True,
            )
            try:
                message_ref = self.sink.emit(destination, payload)
            except SinkError as e:
                report.failed += 1
                media_deliveries_total.labels(status="failed").inc()
                logger.warning(
                    "media_emit_failed",
                    extra={"chat_id": destination, "media_hash": album.hash, "error": str(e)},
                )
                continue

            report.sent += 1
            report.message_refs.append(message_ref)
            media_deliveries_total.labels(status="sent").inc()
            if self._schedule(destination, message_ref, album.hash):
                report.scheduled += 1

        logger.info(
            "album_delivered",
            extra={"chat_id": destination, "media_hash": album.hash, "sent": report.sent, "failed": report.failed},
        )
        return report

    def _schedule(self, destination: str, message_ref: int, media_hash: str) -> bool:
        now = self._clock()
        row = ScheduledRetraction(
            destination=destination,
            message_ref=message_ref,
            album_hash=media_hash,
            due_at=now + self.delay_seconds * 1000,
            status="pending",
            created_at=now,
        )
        try:
            self.db.add(row)
            self.db.commit()
            return True
        except IntegrityError:
            # same message already scheduled
            self.db.rollback()
            return False
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(
                "retraction_schedule_failed",
                extra={"chat_id": destination, "message_ref": message_ref},
            )
            return False

    # ------------------------------------------------------------------
    # Sweep
    # ------------------------------------------------------------------

    def due(self, limit: int = 100) -> list[ScheduledRetraction]:
        now = self._clock()
        return (
            self.db.query(ScheduledRetraction)
            .filter(ScheduledRetraction.status == "pending", ScheduledRetraction.due_at <= now)
            .order_by(ScheduledRetraction.due_at)
            .limit(limit)
            .all()
        )

    def claim(self, retraction_id: str) -> bool:
        result = self.db.execute(
            update(ScheduledRetraction)
            .where(ScheduledRetraction.id == retraction_id, ScheduledRetraction.status == "pending")
            .values(status="claimed")
        )
        self.db.commit()
        return result.rowcount == 1

    def sweep_due(self, limit: int = 100) -> int:
        """Retract every due message once; returns how many rows this call processed."""
        try:
            rows = [(r.id, r.destination, r.message_ref, r.album_hash) for r in self.due(limit)]
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("retraction sweep failed") from e

        processed = 0
        for retraction_id, destination, message_ref, media_hash in rows:
            try:
                if not self.claim(retraction_id):
                    continue
            except SQLAlchemyError:
                self.db.rollback()
                logger.warning("retraction_claim_failed", extra={"retraction_id": retraction_id})
                continue
            processed += 1
            status = self._retract_one(destination, message_ref, media_hash)
            self._finish(retraction_id, "failed" if status == "failed" else "done")
        if processed:
            logger.info("retraction_sweep_done", extra={"claimed": processed})
        return processed

    def _retract_one(self, destination: str, message_ref: int, media_hash: str) -> str:
        try:
            self.sink.retract(destination, message_ref)
            status = "done"
        except MessageNotFound:
            status = "not_found"
        except SinkError as e:
            retractions_total.labels(status="failed").inc()
            logger.warning(
                "retraction_failed",
                extra={"chat_id": destination, "message_ref": message_ref, "error": str(e)},
            )
            return "failed"
        retractions_total.labels(status=status).inc()

        notice = OutboundMessage(
            kind="text",
            text=CLEANED_TEXT.format(time_left=self.grants.time_remaining(destination)),
            reply_markup=build_cleaned_markup(media_hash),
            parse_mode="Markdown",
        )
        try:
            self.sink.emit(destination, notice)
        except SinkError as e:
            logger.warning("cleaned_notice_failed", extra={"chat_id": destination, "error": str(e)})
        logger.info("retraction_done", extra={"chat_id": destination, "message_ref": message_ref})
        return status

    def _finish(self, retraction_id: str, status: str) -> None:
        try:
            self.db.execute(
                update(ScheduledRetraction)
                .where(ScheduledRetraction.id == retraction_id)
                .values(status=status, completed_at=self._clock())
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("retraction_finish_failed", extra={"retraction_id": retraction_id})
