from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from nightpass.core.config import settings
from nightpass.db.session import get_db
from nightpass.services.media.service import MediaRegistry
from nightpass.services.users.service import UserService


router = APIRouter()


@router.get("/stats")
def stats(db: Session = Depends(get_db)) -> dict:
    """Tracked users, users seen in the active window, stored albums."""
    users = UserService(db)
    return {
        "userCount": users.count_users(),
        "activeUsers": users.count_active_users(settings.active_user_window_days),
        "mediaCount": MediaRegistry(db).count_albums(),
    }
