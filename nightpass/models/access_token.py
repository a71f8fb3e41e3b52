from sqlalchemy import BigInteger, Boolean, Column, String

from nightpass.db.base import Base


class TokenRecord(Base):
    """Issuance record of a minted token. Kept after use for replay detection."""

    __tablename__ = "access_tokens"

    token = Column(String, primary_key=True)
    owner_id = Column(String, nullable=False, index=True)
    media_hash = Column(String, nullable=False, default="")  # "" = general access
    expires_at = Column(BigInteger, nullable=False)
    created_at = Column(BigInteger, nullable=False)
    used = Column(Boolean, nullable=False, default=False)
    activated_at = Column(BigInteger, nullable=True)
