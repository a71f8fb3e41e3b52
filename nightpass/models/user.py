from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, String

from nightpass.db.base import Base


class User(Base):
    """Bot user seen at least once; used for broadcast and stats."""

    __tablename__ = "users"

    telegram_id = Column(String, primary_key=True)
    telegram_username = Column(String, nullable=True)
    telegram_first_name = Column(String, nullable=True)
    telegram_last_name = Column(String, nullable=True)
    language_code = Column(String, nullable=True)
    is_bot = Column(Boolean, nullable=False, default=False)
    first_seen = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
    last_seen = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc), index=True)
