"""
Deep links into the bot: /start pompom_<hash> opens an album, /start t... returns a token.
"""
from __future__ import annotations

from urllib.parse import quote

from nightpass.access.config import get_bot_username

ALBUM_PREFIX = "pompom_"


def _bot_url(payload: str, username: str | None = None) -> str:
    return f"https://t.me/{username or get_bot_username()}?start={payload}"


def album_link(media_hash: str, username: str | None = None) -> str:
    return _bot_url(f"{ALBUM_PREFIX}{media_hash}", username)


def token_return_link(token: str, username: str | None = None) -> str:
    return _bot_url(token, username)


def share_link(media_hash: str, text: str | None = None, username: str | None = None) -> str:
    url = f"https://t.me/share/url?url={quote(album_link(media_hash, username), safe='')}"
    if text:
        url += f"&text={quote(text, safe='')}"
    return url


def parse_start_payload(text: str | None) -> str | None:
    """'/start pompom_abc' -> 'pompom_abc'."""
    if not text:
        return None
    parts = text.strip().split()
    if len(parts) < 2:
        return None
    return parts[1]


def parse_album_hash(payload: str | None) -> str | None:
    if payload and payload.startswith(ALBUM_PREFIX) and len(payload) > len(ALBUM_PREFIX):
        return payload[len(ALBUM_PREFIX):]
    return None
