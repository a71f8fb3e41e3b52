from uuid import uuid4

from sqlalchemy import BigInteger, Column, String, UniqueConstraint

from nightpass.db.base import Base


class ScheduledRetraction(Base):
    """One row per delivered message; swept once due_at passes."""

    __tablename__ = "scheduled_retractions"
    __table_args__ = (UniqueConstraint("destination", "message_ref", name="uq_retraction_message"),)

    id = Column(String, primary_key=True, default=lambda: str(uuid4()))
    destination = Column(String, nullable=False)
    message_ref = Column(BigInteger, nullable=False)
    album_hash = Column(String, nullable=False)
    due_at = Column(BigInteger, nullable=False, index=True)
    status = Column(String, nullable=False, default="pending", index=True)  # pending, claimed, done, failed
    created_at = Column(BigInteger, nullable=False)
    completed_at = Column(BigInteger, nullable=True)
