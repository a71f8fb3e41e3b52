import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from nightpass.models.user import User

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: Session):
        self.db = db

    def track_user(
        self,
        telegram_id: str,
        telegram_username: str | None = None,
        telegram_first_name: str | None = None,
        telegram_last_name: str | None = None,
        language_code: str | None = None,
        is_bot: bool = False,
    ) -> User | None:
        """
        Upsert the user for broadcast/stats. first_seen is kept, last_seen refreshed,
        None fields do not overwrite known values. Failures are logged, never raised.
        """
        telegram_id = str(telegram_id)
        now = datetime.now(timezone.utc)
        try:
            user = self.db.get(User, telegram_id)
            if user is None:
                user = User(telegram_id=telegram_id, first_seen=now, is_bot=is_bot)
                self.db.add(user)
            if telegram_username is not None:
                user.telegram_username = telegram_username
            if telegram_first_name is not None:
                user.telegram_first_name = telegram_first_name
            if telegram_last_name is not None:
                user.telegram_last_name = telegram_last_name
            if language_code is not None:
                user.language_code = language_code
            user.last_seen = now
            self.db.commit()
            return user
        except IntegrityError:
            # first message raced with another handler; the row exists now
            self.db.rollback()
            return self.db.get(User, telegram_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.warning("track_user_failed", extra={"user_id": telegram_id})
            return None

    def get(self, telegram_id: str) -> User | None:
        return self.db.get(User, str(telegram_id))

    def count_users(self) -> int:
        return self.db.query(func.count(User.telegram_id)).scalar() or 0

    def count_active_users(self, days: int = 30) -> int:
        since = datetime.now(timezone.utc) - timedelta(days=days)
        return self.db.query(func.count(User.telegram_id)).filter(User.last_seen > since).scalar() or 0

    def list_recipient_ids(self) -> list[str]:
        return [row[0] for row in self.db.query(User.telegram_id).filter(User.is_bot.is_(False)).all()]
