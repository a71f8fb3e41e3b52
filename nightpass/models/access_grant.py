from sqlalchemy import BigInteger, Boolean, Column, String

from nightpass.db.base import Base


class AccessGrant(Base):
    """18-hour pass per user. Timestamps are epoch ms; dead once now > expires."""

    __tablename__ = "access_grants"

    user_id = Column(String, primary_key=True)
    granted = Column(Boolean, nullable=False, default=True)
    granted_at = Column(BigInteger, nullable=False)
    expires = Column(BigInteger, nullable=False, index=True)
