"""
GrantStore: per-user pass (granted flag + expiry), lazily expired on read.
"""
from __future__ import annotations

import logging

from sqlalchemy import delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.core.clock import Clock, format_remaining, now_ms
from nightpass.core.errors import StoreUnavailable
from nightpass.models.access_grant import AccessGrant

logger = logging.getLogger(__name__)

UNKNOWN_REMAINING = "unknown"


class GrantStore:
    def __init__(self, db: Session, clock: Clock = now_ms):
        self.db = db
        self._clock = clock

    def grant(self, user_id: str, duration_ms: int) -> AccessGrant:
        """
        Unconditionally overwrite the user's pass: granted_at=now, expires=now+duration.
        A longer existing pass is NOT preserved.
        """
        if duration_ms <= 0:
            raise ValueError("grant duration must be positive")
        user_id = str(user_id)
        now = self._clock()
        try:
            row = self._upsert(user_id, now, now + duration_ms)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("grant_store_write_failed", extra={"user_id": user_id})
            raise StoreUnavailable("grant write failed") from e
        logger.info("grant_issued", extra={"user_id": user_id})
        return row

    def _upsert(self, user_id: str, granted_at: int, expires: int) -> AccessGrant:
        row = self.db.get(AccessGrant, user_id)
        if row is None:
            row = AccessGrant(user_id=user_id, granted=True, granted_at=granted_at, expires=expires)
            self.db.add(row)
            try:
                self.db.commit()
                return row
            except IntegrityError:
                # concurrent grant inserted first; overwrite it
                self.db.rollback()
                row = self.db.get(AccessGrant, user_id)
                if row is None:
                    raise
        row.granted = True
        row.granted_at = granted_at
        row.expires = expires
        self.db.add(row)
        self.db.commit()
        return row

    def get_active(self, user_id: str) -> AccessGrant | None:
        """Current live grant or None. An expired grant is deleted (best-effort)."""
        user_id = str(user_id)
        try:
            self.db.expire_all()
            row = self.db.get(AccessGrant, user_id)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("grant read failed") from e
        if row is None or not row.granted:
            return None
        now = self._clock()
        if now > row.expires:
            self._delete_expired(user_id, now)
            return None
        return row

    def _delete_expired(self, user_id: str, now: int) -> None:
        # conditional: never removes a grant renewed since our read
        try:
            self.db.execute(
                delete(AccessGrant).where(AccessGrant.user_id == user_id, AccessGrant.expires < now)
            )
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("grant_lazy_delete_failed", extra={"user_id": user_id})

    def is_active(self, user_id: str) -> bool:
        return self.get_active(user_id) is not None

    def remaining_ms(self, user_id: str) -> int | None:
        row = self.get_active(user_id)
        if row is None:
            return None
        return max(0, row.expires - self._clock())

    def time_remaining(self, user_id: str) -> str:
        """'17h 59m', or UNKNOWN_REMAINING when there is no live grant or the store is down."""
        try:
            remaining = self.remaining_ms(user_id)
        except StoreUnavailable:
            return UNKNOWN_REMAINING
        if remaining is None:
            return UNKNOWN_REMAINING
        return format_remaining(remaining)
