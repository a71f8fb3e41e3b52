"""
Access core: signed time-bound tokens, the ad-gate flow and deep links.
Decision (access.flow.AccessFlow) and execution (DeliveryScheduler) are separate; contract via AccessOutcome.
"""
from nightpass.access.models import (
    AccessOutcome,
    AccessState,
    AlbumView,
    DenyReason,
    MediaEntry,
    RuntimeConfig,
    TokenCheck,
)
from nightpass.access.tokens import TokenCodec, get_token_codec

__all__ = [
    "AccessOutcome",
    "AccessState",
    "AlbumView",
    "DenyReason",
    "MediaEntry",
    "RuntimeConfig",
    "TokenCheck",
    "TokenCodec",
    "get_token_codec",
]
