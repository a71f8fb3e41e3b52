from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.orm import relationship

from nightpass.db.base import Base


class MediaAlbum(Base):
    __tablename__ = "media_albums"

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    group_id = Column(String, unique=True, nullable=True)  # null for single items
    hash = Column(String, unique=True, nullable=False, index=True)
    link_sent = Column(Boolean, nullable=False, default=False)
    views = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))

    media = relationship(
        "MediaItem",
        order_by="MediaItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )


class MediaItem(Base):
    __tablename__ = "media_items"
    __table_args__ = (
        UniqueConstraint("album_id", "file_ref", name="uq_media_item_file"),
        UniqueConstraint("album_id", "position", name="uq_media_item_position"),
    )

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    album_id = Column(String, ForeignKey("media_albums.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    type = Column(String, nullable=False)  # photo, video
    file_ref = Column(String, nullable=False)  # Telegram file_id
