from nightpass.models.access_grant import AccessGrant
from nightpass.models.access_token import TokenRecord
from nightpass.models.broadcast import Broadcast
from nightpass.models.media import MediaAlbum, MediaItem
from nightpass.models.runtime_config import RuntimeConfigRow
from nightpass.models.scheduled_retraction import ScheduledRetraction
from nightpass.models.user import User

__all__ = [
    "AccessGrant",
    "Broadcast",
    "MediaAlbum",
    "MediaItem",
    "RuntimeConfigRow",
    "ScheduledRetraction",
    "TokenRecord",
    "User",
]
