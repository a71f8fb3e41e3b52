"""
TokenLedger: issuance records of minted tokens and their single-use activation.
"""
from __future__ import annotations

import logging

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.core.clock import Clock, now_ms
from nightpass.core.errors import StoreUnavailable
from nightpass.models.access_token import TokenRecord

logger = logging.getLogger(__name__)


class TokenLedger:
    def __init__(self, db: Session, clock: Clock = now_ms):
        self.db = db
        self._clock = clock

    def record(self, token: str, owner_id: str, media_hash: str | None, expires_at: int) -> TokenRecord:
        row = TokenRecord(
            token=token,
            owner_id=str(owner_id),
            media_hash=media_hash or "",
            expires_at=expires_at,
            created_at=self._clock(),
            used=False,
        )
        try:
            self.db.add(row)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("token_record_failed", extra={"user_id": str(owner_id)})
            raise StoreUnavailable("token record failed") from e
        return row

    def lookup(self, token: str) -> TokenRecord | None:
        try:
            self.db.expire_all()
            return self.db.get(TokenRecord, token)
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StoreUnavailable("token lookup failed") from e

    def activate(self, token: str) -> bool:
        """
        Atomically flip used false -> true. Exactly one of any number of concurrent
        callers gets True; missing or already used tokens give False.
        """
        try:
            result = self.db.execute(
                update(TokenRecord)
                .where(TokenRecord.token == token, TokenRecord.used.is_(False))
                .values(used=True, activated_at=self._clock())
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.exception("token_activate_failed")
            raise StoreUnavailable("token activation failed") from e
        return result.rowcount == 1
