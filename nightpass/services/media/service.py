"""
MediaRegistry: hash-addressed albums built from upload-group messages.
"""
from __future__ import annotations

import logging
import secrets
import string

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.access.models import AlbumView
from nightpass.core.errors import StoreUnavailable
from nightpass.models.media import MediaAlbum, MediaItem

logger = logging.getLogger(__name__)

MEDIA_TYPES = ("photo", "video")
HASH_ALPHABET = string.ascii_lowercase + string.digits
HASH_LENGTH = 10
MAX_INGEST_ATTEMPTS = 5


class MediaRegistry:
    def __init__(self, db: Session):
        self.db = db

    # ------------------------------------------------------------------
    # Hash
    # ------------------------------------------------------------------

    def generate_hash(self) -> str:
        for _ in range(10):
            candidate = "".join(secrets.choice(HASH_ALPHABET) for _ in range(HASH_LENGTH))
            exists = self.db.query(MediaAlbum.id).filter(MediaAlbum.hash == candidate).first()
            if not exists:
                return candidate
        return "".join(secrets.choice(HASH_ALPHABET) for _ in range(HASH_LENGTH + 4))

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def ingest(self, group_key: str | None, media_type: str, file_ref: str) -> str:
        """
        Add one media part; returns the album hash.
        Same group_key -> appended to the existing album (re-sending a part is a no-op).
        No group_key -> always a new single-item album.

        Album lookup/creation and the append run in one transaction; a unique
        (album_id, position) or (album_id, file_ref) clash rolls it back and retries.
        """
        if media_type not in MEDIA_TYPES:
            raise ValueError(f"unsupported media type: {media_type}")
        if not file_ref:
            raise ValueError("file_ref is required")
        group_key = str(group_key) if group_key else None

        for attempt in range(1, MAX_INGEST_ATTEMPTS + 1):
            try:
                album = self._lock_group(group_key) if group_key else None
                if album is None:
                    album = self._create_album(group_key)
                media_hash = album.hash
                self._append(album.id, media_type, file_ref)
                self.db.commit()
            except IntegrityError as e:
                self.db.rollback()
                if attempt < MAX_INGEST_ATTEMPTS:
                    logger.info("media_ingest_retry", extra={"group_id": group_key, "error": str(e.orig)})
                    continue
                logger.exception("media_ingest_conflict", extra={"group_id": group_key})
                raise StoreUnavailable("media ingest conflict") from e
            except SQLAlchemyError as e:
                self.db.rollback()
                logger.exception("media_ingest_failed", extra={"group_id": group_key})
                raise StoreUnavailable("media ingest failed") from e
            logger.info("media_ingested", extra={"media_hash": media_hash, "group_id": group_key})
            return media_hash

    def _create_album(self, group_key: str | None) -> MediaAlbum:
        album = MediaAlbum(group_id=group_key, hash=self.generate_hash(), link_sent=False, views=0)
        self.db.add(album)
        self.db.flush()
        return album

    def _lock_group(self, group_key: str) -> MediaAlbum | None:
        # row lock held until the append commits
        return (
            self.db.query(MediaAlbum)
            .filter(MediaAlbum.group_id == group_key)
            .with_for_update()
            .one_or_none()
        )

    def _next_position(self, album_id: str) -> int:
        return (
            self.db.query(func.coalesce(func.max(MediaItem.position), -1))
            .filter(MediaItem.album_id == album_id)
            .scalar()
        ) + 1

    def _append(self, album_id: str, media_type: str, file_ref: str) -> None:
        duplicate = (
            self.db.query(MediaItem.id)
            .filter(MediaItem.album_id == album_id, MediaItem.file_ref == file_ref)
            .first()
        )
        if duplicate:
            return
        position = self._next_position(album_id)
        self.db.add(MediaItem(album_id=album_id, position=position, type=media_type, file_ref=file_ref))
        self.db.flush()

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def find_by_hash(self, media_hash: str) -> MediaAlbum | None:
        if not media_hash:
            return None
        try:
            self.db.expire_all()
            return self.db.query(MediaAlbum).filter(MediaAlbum.hash == media_hash).one_or_none()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("media lookup failed") from e

    def resolve(self, media_hash: str) -> AlbumView | None:
        """Album as a detached view, counting the view. None if the hash is gone."""
        album = self.find_by_hash(media_hash)
        if album is None:
            return None
        view = AlbumView.model_validate(album)
        self.track_view(media_hash)
        return view

    def count_albums(self) -> int:
        return self.db.query(func.count(MediaAlbum.id)).scalar() or 0

    # ------------------------------------------------------------------
    # Atomic flags / counters
    # ------------------------------------------------------------------

    def mark_announced(self, group_key: str) -> bool:
        """Flip link_sent false -> true. True only for the call that did the flip."""
        try:
            result = self.db.execute(
                update(MediaAlbum)
                .where(MediaAlbum.group_id == str(group_key), MediaAlbum.link_sent.is_(False))
                .values(link_sent=True)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("mark announced failed") from e
        return result.rowcount == 1

    def mark_announced_by_hash(self, media_hash: str) -> bool:
        try:
            result = self.db.execute(
                update(MediaAlbum)
                .where(MediaAlbum.hash == media_hash, MediaAlbum.link_sent.is_(False))
                .values(link_sent=True)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("mark announced failed") from e
        return result.rowcount == 1

    def track_view(self, media_hash: str) -> bool:
        """views = views + 1 in the database; failures are logged and ignored."""
        try:
            result = self.db.execute(
                update(MediaAlbum)
                .where(MediaAlbum.hash == media_hash)
                .values(views=MediaAlbum.views + 1)
            )
            self.db.commit()
            return result.rowcount == 1
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("track_view_failed", extra={"media_hash": media_hash})
            return False
