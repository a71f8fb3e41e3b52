"""
Telegram bot using aiogram 3.x: thin transport over the access core.

/start t...            -> AccessFlow.activate (user came back from the ad gate)
/start pompom_<hash>   -> AccessFlow.request_access for that album
/start                 -> AccessFlow.request_access without an album
upload group media     -> IngestionService (announces new albums)
media from elsewhere   -> forwarded to the owner for review
every message          -> TrackUserMiddleware records the sender

Core services are sync (SQLAlchemy + httpx); they run in asyncio.to_thread.
"""
import asyncio
import logging

from aiogram import BaseMiddleware, Bot, Dispatcher, F, Router
from aiogram.filters import Command, CommandStart
from aiogram.types import ErrorEvent, InlineKeyboardMarkup, Message, TelegramObject

from nightpass.access.factory import build_access_flow, build_delivery
from nightpass.access.keyboard import build_join_markup, build_unlock_markup
from nightpass.access.links import parse_album_hash, parse_start_payload
from nightpass.access.models import AccessOutcome, AccessState, DenyReason
from nightpass.access.tokens import looks_like_token
from nightpass.core.config import settings
from nightpass.core.logging import configure_logging
from nightpass.db.session import init_db, session_scope
from nightpass.services.ingestion.service import SUBMISSION_THANKS, IngestionService
from nightpass.services.media.service import MediaRegistry
from nightpass.services.runtime_config.service import RuntimeConfigService
from nightpass.services.telegram.client import TelegramClient, TelegramSink
from nightpass.services.users.service import UserService
from nightpass.workers.tasks.broadcast import broadcast_message

configure_logging()
logger = logging.getLogger("bot")

router = Router()
telegram = TelegramClient()
sink = TelegramSink(telegram)

DENY_TEXT = {
    DenyReason.EXPIRED: "⌛ This link has expired. Tap /start to get a new one.",
    DenyReason.REPLAYED: "🔁 This link was already used. Tap /start to get a new one.",
    DenyReason.OWNER_MISMATCH: "🚫 This link belongs to another user. Tap /start to get your own.",
}
DENY_DEFAULT = "🚫 Invalid link. Tap /start to get a new one."
UNAVAILABLE_TEXT = "⚠️ Something went wrong on our side. Please try again in a minute."
JOIN_TEXT = "🔒 Join our channels first, then open the link again."
UNLOCK_TEXT = (
    "🔑 Activate your NIGHTPASS to watch.\n\n"
    "Open the link below, finish the short steps and you will be sent back here.\n"
    "One activation unlocks everything for {hours} hours."
)
GRANTED_TEXT = "✅ Your pass is active.\n⏰ Time left: {time_left}"
CONTENT_MISSING_TEXT = "😔 This content is no longer available, but your pass is active.\n⏰ Time left: {time_left}"
VISITOR_TEXT = "👤 {name} (id {user_id}) opened {what}"


def _markup(data: dict) -> InlineKeyboardMarkup:
    return InlineKeyboardMarkup.model_validate(data)


def _display_name(message: Message) -> str:
    user = message.from_user
    if user is None:
        return "friend"
    return user.first_name or user.username or "friend"


def _process_start(user_id: str, payload: str | None, display_name: str) -> AccessOutcome:
    """Run the access decision and, when granted with an album, deliver it."""
    with session_scope() as db:
        config = RuntimeConfigService(db).snapshot()
        flow = build_access_flow(db, config, telegram)
        if looks_like_token(payload):
            outcome = flow.activate(user_id, payload)
        else:
            outcome = flow.request_access(user_id, config, parse_album_hash(payload))
        if outcome.state == AccessState.GRANTED and outcome.album is not None:
            build_delivery(db, sink).deliver(user_id, outcome.album, display_name)
        return outcome


def _track(message: Message) -> None:
    user = message.from_user
    if user is None:
        return
    with session_scope() as db:
        UserService(db).track_user(
            str(user.id),
            telegram_username=user.username,
            telegram_first_name=user.first_name,
            telegram_last_name=user.last_name,
            language_code=user.language_code,
            is_bot=user.is_bot,
        )


class TrackUserMiddleware(BaseMiddleware):
    """Record the sender of every incoming message before it is handled."""

    async def __call__(self, handler, event: TelegramObject, data: dict):
        if isinstance(event, Message):
            await asyncio.to_thread(_track, event)
        return await handler(event, data)


async def _render(message: Message, outcome: AccessOutcome) -> None:
    state = outcome.state
    if state == AccessState.GRANTED:
        if outcome.album is not None:
            return
        template = CONTENT_MISSING_TEXT if outcome.content_missing else GRANTED_TEXT
        await message.answer(template.format(time_left=outcome.time_remaining))
    elif state == AccessState.AD_ISSUED:
        await message.answer(
            UNLOCK_TEXT.format(hours=settings.access_window_hours),
            reply_markup=_markup(build_unlock_markup(outcome.redirect_url, settings.help_url or None)),
        )
    elif state == AccessState.JOIN_REQUIRED:
        await message.answer(JOIN_TEXT, reply_markup=_markup(build_join_markup(outcome.invite_links, outcome.media_hash)))
    elif state == AccessState.DENIED:
        await message.answer(DENY_TEXT.get(outcome.deny_reason, DENY_DEFAULT))
    else:
        # AD_REQUIRED / UNAVAILABLE: retryable
        await message.answer(UNAVAILABLE_TEXT)


@router.message(CommandStart())
async def cmd_start(message: Message):
    if message.from_user is None:
        return
    user_id = str(message.from_user.id)
    payload = parse_start_payload(message.text)
    name = _display_name(message)

    outcome = await asyncio.to_thread(_process_start, user_id, payload, name)
    await _render(message, outcome)

    if settings.owner_telegram_id and user_id != settings.owner_telegram_id:
        what = f"album {outcome.media_hash}" if outcome.media_hash else "the bot"
        text = VISITOR_TEXT.format(name=name, user_id=user_id, what=what)
        await asyncio.to_thread(sink.send_text, settings.owner_telegram_id, text)


def _ingest(chat_id: str, media_type: str, file_ref: str, media_group_id: str | None) -> str:
    with session_scope() as db:
        result = IngestionService(MediaRegistry(db), sink).ingest_message(chat_id, media_type, file_ref, media_group_id)
        return result.media_hash


def _forward(media_type: str, file_ref: str, username: str | None) -> bool:
    with session_scope() as db:
        return IngestionService(MediaRegistry(db), sink).forward_submission(
            settings.owner_telegram_id, media_type, file_ref, username
        )


@router.message(F.photo | F.video)
async def upload_media(message: Message):
    chat_id = str(message.chat.id)
    if message.photo:
        media_type, file_ref = "photo", message.photo[-1].file_id
    else:
        media_type, file_ref = "video", message.video.file_id
    if not settings.upload_group_id or chat_id != settings.upload_group_id:
        if settings.owner_telegram_id and message.from_user is not None:
            username = message.from_user.username
            await asyncio.to_thread(_forward, media_type, file_ref, username)
            await message.answer(SUBMISSION_THANKS)
        return
    try:
        media_hash = await asyncio.to_thread(_ingest, chat_id, media_type, file_ref, message.media_group_id)
    except ValueError as e:
        logger.warning("upload_rejected", extra={"chat_id": chat_id, "error": str(e)})
        return
    logger.info("upload_ingested", extra={"chat_id": chat_id, "media_hash": media_hash})


def _is_owner(message: Message) -> bool:
    return bool(
        settings.owner_telegram_id
        and message.from_user is not None
        and str(message.from_user.id) == settings.owner_telegram_id
    )


def _stats() -> dict:
    with session_scope() as db:
        users = UserService(db)
        return {
            "users": users.count_users(),
            "active": users.count_active_users(settings.active_user_window_days),
            "albums": MediaRegistry(db).count_albums(),
        }


@router.message(Command("stats"))
async def cmd_stats(message: Message):
    if not _is_owner(message):
        return
    data = await asyncio.to_thread(_stats)
    await message.answer(
        f"📊 Users: {data['users']}\n"
        f"🟢 Active ({settings.active_user_window_days}d): {data['active']}\n"
        f"🎬 Albums: {data['albums']}"
    )


@router.message(Command("broadcast"))
async def cmd_broadcast(message: Message):
    if not _is_owner(message):
        return
    text = (message.text or "").partition(" ")[2].strip()
    if not text:
        await message.answer("Usage: /broadcast <text>")
        return
    broadcast_message.delay(text)
    await message.answer("📣 Broadcast queued.")


def _set_ads(enabled: bool) -> int:
    with session_scope() as db:
        return RuntimeConfigService(db).update({"ad_enabled": enabled}).version


@router.message(Command("ads"))
async def cmd_ads(message: Message):
    """/ads on | /ads off - toggle the ad gate without a restart."""
    if not _is_owner(message):
        return
    arg = (message.text or "").partition(" ")[2].strip().lower()
    if arg not in ("on", "off"):
        await message.answer("Usage: /ads on|off")
        return
    version = await asyncio.to_thread(_set_ads, arg == "on")
    logger.info("ads_toggled", extra={"state": arg, "version": version})
    await message.answer(f"Ads {arg} (config v{version})")


async def on_error(event: ErrorEvent, *args, **kwargs):
    """Global error handler."""
    logger.exception("Error in handler", extra={"error": str(event.exception)})


async def main():
    """Start the bot."""
    logger.info("Starting bot...")
    init_db()
    bot = Bot(token=settings.telegram_bot_token)
    dp = Dispatcher()
    dp.errors.register(on_error)
    dp.message.middleware(TrackUserMiddleware())
    dp.include_router(router)

    await bot.delete_webhook(drop_pending_updates=True)
    logger.info("Bot started successfully!")
    try:
        await dp.start_polling(bot, allowed_updates=["message"])
    finally:
        await bot.session.close()
        telegram.close()


if __name__ == "__main__":
    asyncio.run(main())
