"""
Transport contract used by delivery: emit a message, retract it later.
TelegramSink (nightpass.services.telegram.client) is the production implementation.
"""
from abc import ABC, abstractmethod
from typing import Any

from pydantic import BaseModel


class OutboundMessage(BaseModel):
    """One message to emit. kind=photo|video carries file_ref; kind=text carries text only."""

    kind: str = "text"
    text: str = ""
    file_ref: str | None = None
    reply_markup: dict[str, Any] | None = None
    protect_content: bool = False
    parse_mode: str | None = None

    model_config = {"frozen": True}


class Sink(ABC):
    @abstractmethod
    def emit(self, destination: str, payload: OutboundMessage) -> int:
        """Send payload; returns the message ref. Raises SinkError."""
        raise NotImplementedError

    @abstractmethod
    def retract(self, destination: str, message_ref: int) -> None:
        """Delete a sent message. Raises MessageNotFound if already gone, SinkError otherwise."""
        raise NotImplementedError
