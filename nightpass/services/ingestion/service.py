"""
Upload group ingestion: every photo/video posted in the upload group lands in the
MediaRegistry; the first part of each album triggers one "new album" announcement.
Media sent to the bot from anywhere else is forwarded to the owner for review.
"""
import logging

from pydantic import BaseModel

from nightpass.access.keyboard import build_announcement_markup
from nightpass.access.links import album_link
from nightpass.core.errors import SinkError
from nightpass.services.delivery.base import OutboundMessage, Sink
from nightpass.services.media.service import MediaRegistry

logger = logging.getLogger(__name__)

ALBUM_ANNOUNCEMENT = "🎬 NEW ALBUM AVAILABLE!\n\n🤖 Bot Direct Link: {link}"
SINGLE_ANNOUNCEMENT = "🎬 NEW VIDEO AVAILABLE!\n\n🤖 Bot Direct Link: {link}"
SUBMISSION_CAPTION = "From @{username}"
SUBMISSION_THANKS = "Thanks for sharing! Our team will review it soon."


class IngestResult(BaseModel):
    media_hash: str
    announced: bool = False


class IngestionService:
    def __init__(self, registry: MediaRegistry, sink: Sink | None = None) -> None:
        self.registry = registry
        self.sink = sink

    def ingest_message(
        self,
        chat_id: str,
        media_type: str,
        file_ref: str,
        media_group_id: str | None = None,
    ) -> IngestResult:
        media_hash = self.registry.ingest(media_group_id, media_type, file_ref)
        if media_group_id:
            should_announce = self.registry.mark_announced(media_group_id)
            template = ALBUM_ANNOUNCEMENT
        else:
            should_announce = self.registry.mark_announced_by_hash(media_hash)
            template = SINGLE_ANNOUNCEMENT

        announced = False
        if should_announce and self.sink is not None:
            message = OutboundMessage(
                kind="text",
                text=template.format(link=album_link(media_hash)),
                reply_markup=build_announcement_markup(media_hash),
            )
            try:
                self.sink.emit(str(chat_id), message)
                announced = True
            except SinkError as e:
                logger.warning("announcement_failed", extra={"media_hash": media_hash, "error": str(e)})
        return IngestResult(media_hash=media_hash, announced=announced)

    def forward_submission(self, owner_id: str, media_type: str, file_ref: str, username: str | None = None) -> bool:
        """Pass media sent from outside the upload group on to the owner for review."""
        if self.sink is None:
            return False
        message = OutboundMessage(
            kind=media_type,
            file_ref=file_ref,
            text=SUBMISSION_CAPTION.format(username=username or "unknown"),
        )
        try:
            self.sink.emit(str(owner_id), message)
        except SinkError as e:
            logger.warning("submission_forward_failed", extra={"owner_id": owner_id, "error": str(e)})
            return False
        logger.info("submission_forwarded", extra={"owner_id": owner_id, "media_type": media_type})
        return True
