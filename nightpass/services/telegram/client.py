"""
Telegram client wrapper using httpx sync client.
Provides sync interface for Celery workers and the core services (no event loop issues).
"""
import json
import time
import logging

import httpx

from nightpass.core.config import settings
from nightpass.core.errors import MessageNotFound, SinkError
from nightpass.services.delivery.base import OutboundMessage, Sink
from nightpass.utils.metrics import (
    telegram_requests_total,
    telegram_request_duration_seconds,
)


logger = logging.getLogger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
# deleteMessage descriptions meaning the message is already gone
MESSAGE_GONE_MARKERS = ("message to delete not found", "message not found")


class TelegramAPIError(SinkError):
    def __init__(self, method: str, error_code: int, description: str) -> None:
        super().__init__(f"{method} -> {error_code}: {description}")
        self.method = method
        self.error_code = error_code
        self.description = description


class TelegramClient:
    """
    Sync Telegram client for workers and services.
    Uses httpx sync client - no event loop issues.
    """

    def __init__(self, token: str | None = None, transport: httpx.BaseTransport | None = None) -> None:
        self._token = token or settings.telegram_bot_token
        self._base_url = f"{TELEGRAM_API_BASE}/bot{self._token}"
        self._transport = transport
        self._client: httpx.Client | None = None

    @property
    def client(self) -> httpx.Client:
        """Lazy initialization of httpx client."""
        if self._client is None:
            self._client = httpx.Client(timeout=settings.http_client_timeout, transport=self._transport)
        return self._client

    def _record_request(self, method: str, status: str, duration: float) -> None:
        telegram_requests_total.labels(method=method, status=status).inc()
        telegram_request_duration_seconds.labels(method=method).observe(duration)

    def _api_call(self, method: str, data: dict, timeout: float | None = None) -> dict:
        """Make API call to Telegram. Raises TelegramAPIError / SinkError."""
        url = f"{self._base_url}/{method}"
        start = time.time()
        try:
            if timeout is not None:
                resp = self.client.post(url, json=data, timeout=timeout)
            else:
                resp = self.client.post(url, json=data)
            result = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            self._record_request(method, "error", time.time() - start)
            raise SinkError(f"{method}: {e}") from e
        if not result.get("ok"):
            self._record_request(method, "error", time.time() - start)
            error_desc = result.get("description", "Unknown error")
            error_code = result.get("error_code", 0)
            logger.warning(f"Telegram API error: {method} -> {error_code}: {error_desc}")
            raise TelegramAPIError(method, error_code, error_desc)
        self._record_request(method, "success", time.time() - start)
        return result

    def send_message(
        self,
        chat_id: str,
        text: str,
        reply_markup: dict | None = None,
        parse_mode: str | None = None,
    ) -> dict:
        """Send text message to chat."""
        data = {"chat_id": int(chat_id), "text": text}
        if reply_markup:
            data["reply_markup"] = reply_markup
        if parse_mode:
            data["parse_mode"] = parse_mode
        return self._api_call("sendMessage", data)

    def send_media(
        self,
        chat_id: str,
        kind: str,
        file_id: str,
        caption: str | None = None,
        reply_markup: dict | None = None,
        protect_content: bool = False,
    ) -> dict:
        """Send an already uploaded photo/video by file_id."""
        method = {"photo": "sendPhoto", "video": "sendVideo"}.get(kind)
        if method is None:
            raise ValueError(f"unsupported media kind: {kind}")
        data = {"chat_id": int(chat_id), kind: file_id}
        if caption:
            data["caption"] = caption
        if reply_markup:
            data["reply_markup"] = reply_markup
        if protect_content:
            data["protect_content"] = True
        return self._api_call(method, data)

    def delete_message(self, chat_id: str, message_id: int) -> None:
        """Delete message. Raises MessageNotFound when it is already gone."""
        try:
            self._api_call("deleteMessage", {"chat_id": int(chat_id), "message_id": int(message_id)})
        except TelegramAPIError as e:
            description = e.description.lower()
            if e.error_code == 400 and any(marker in description for marker in MESSAGE_GONE_MARKERS):
                raise MessageNotFound(str(e)) from e
            raise

    def get_chat_member_status(self, chat_id: str, user_id: str, timeout: float | None = None) -> str:
        """Member status string (member, administrator, creator, left, kicked, ...)."""
        result = self._api_call(
            "getChatMember",
            {"chat_id": int(chat_id), "user_id": int(user_id)},
            timeout=timeout,
        )
        return ((result.get("result") or {}).get("status") or "").lower()

    def close(self) -> None:
        """Close httpx client."""
        if self._client is not None:
            try:
                self._client.close()
            except Exception as e:
                logger.warning("Failed to close client", extra={"error": str(e)})
            finally:
                self._client = None


class TelegramSink(Sink):
    """Sink over the Bot API: emit = send*, retract = deleteMessage."""

    def __init__(self, client: TelegramClient) -> None:
        self.client = client

    def emit(self, destination: str, payload: OutboundMessage) -> int:
        if payload.kind == "text":
            result = self.client.send_message(
                destination,
                payload.text,
                reply_markup=payload.reply_markup,
                parse_mode=payload.parse_mode,
            )
        else:
            result = self.client.send_media(
                destination,
                payload.kind,
                payload.file_ref or "",
                caption=payload.text or None,
                reply_markup=payload.reply_markup,
                protect_content=payload.protect_content,
            )
        return int(result["result"]["message_id"])

    def retract(self, destination: str, message_ref: int) -> None:
        self.client.delete_message(destination, message_ref)

    def send_text(self, destination: str, text: str, reply_markup: dict | None = None) -> None:
        """Fire-and-log text send for notices where failure must not break the caller."""
        try:
            self.emit(destination, OutboundMessage(kind="text", text=text, reply_markup=reply_markup))
        except SinkError as e:
            logger.warning("notice_send_failed", extra={"chat_id": destination, "error": str(e)})
