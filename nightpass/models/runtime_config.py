from datetime import datetime, timezone

from sqlalchemy import Boolean, Column, DateTime, Integer, String

from nightpass.db.base import Base


class RuntimeConfigRow(Base):
    """Runtime overrides set by the owner (single row, id=1). Null = use .env value."""

    __tablename__ = "runtime_config"

    id = Column(Integer, primary_key=True, default=1)
    version = Column(Integer, nullable=False, default=0)
    ad_enabled = Column(Boolean, nullable=True)
    private_channel_ids = Column(String, nullable=True)
    channel_invite_links = Column(String, nullable=True)
    ad_gate_domain = Column(String, nullable=True)
    ad_gate_api_token = Column(String, nullable=True)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=lambda: datetime.now(timezone.utc))
