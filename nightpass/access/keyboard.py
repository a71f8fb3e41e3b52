"""
Dumb layer: hash/links in, reply_markup (dict for Telegram API) out.
"""
from __future__ import annotations

from typing import Any

from nightpass.access.links import album_link, share_link

SHARE_TEXT = "Check out this exclusive content! 🔥"


def build_content_markup(media_hash: str, more_url: str | None = None) -> dict[str, Any]:
    """Buttons under a delivered photo/video: watch more + refer a friend."""
    row: list[dict[str, Any]] = []
    if more_url:
        row.append({"text": "🤤 WATCH MORE", "url": more_url})
    row.append({"text": "🍌 Refer to FRND", "url": share_link(media_hash)})
    return {"inline_keyboard": [row]}


def build_cleaned_markup(media_hash: str) -> dict[str, Any]:
    return {
        "inline_keyboard": [[
            {"text": "☘️ SHARE WITH FRIENDS", "url": share_link(media_hash, text=SHARE_TEXT)},
            {"text": "🔁 WATCH AGAIN", "url": album_link(media_hash)},
        ]]
    }


def build_unlock_markup(redirect_url: str, help_url: str | None = None) -> dict[str, Any]:
    rows: list[list[dict[str, Any]]] = [[{"text": "🔑 ACTIVATE NIGHTPASS", "url": redirect_url}]]
    if help_url:
        rows.append([{"text": "❓ HOW TO ACTIVATE", "url": help_url}])
    return {"inline_keyboard": rows}


def build_join_markup(invite_links: tuple[str, ...] | list[str], media_hash: str | None = None) -> dict[str, Any]:
    rows: list[list[dict[str, Any]]] = [
        [{"text": f"📢 JOIN CHANNEL {i}", "url": link}] for i, link in enumerate(invite_links, start=1)
    ]
    if media_hash:
        rows.append([{"text": "✅ CLICK TO INVITE", "url": share_link(media_hash)}])
    return {"inline_keyboard": rows}


def build_announcement_markup(media_hash: str) -> dict[str, Any]:
    return {"inline_keyboard": [[{"text": "🤖 Open in Bot", "url": album_link(media_hash)}]]}
