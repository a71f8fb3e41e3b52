"""
DTO access core: RuntimeConfig (snapshot for one request), TokenCheck, AlbumView, AccessOutcome.
"""
from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class RuntimeConfig(BaseModel):
    """Frozen view of effective config; take one per request, never mutate."""

    version: int = 0
    ad_enabled: bool = True
    private_channel_ids: tuple[str, ...] = ()
    channel_invite_links: tuple[str, ...] = ()
    ad_gate_domain: str = ""
    ad_gate_api_token: str = ""

    model_config = {"frozen": True}


class DenyReason(str, Enum):
    MALFORMED = "malformed"
    OWNER_MISMATCH = "owner_mismatch"
    EXPIRED = "expired"
    FORGED = "forged"
    UNKNOWN = "unknown"
    REPLAYED = "replayed"


class TokenCheck(BaseModel):
    """Result of TokenCodec.check: valid, or the first failed check."""

    valid: bool
    reason: DenyReason | None = None
    issued_at: int | None = None

    model_config = {"frozen": True}


class MediaEntry(BaseModel):
    type: str  # photo, video
    file_ref: str

    model_config = {"frozen": True, "from_attributes": True}


class AlbumView(BaseModel):
    """Read-only copy of an album detached from the DB session, ready for delivery."""

    hash: str
    group_id: str | None = None
    media: tuple[MediaEntry, ...] = ()

    model_config = {"frozen": True, "from_attributes": True}


class AccessState(str, Enum):
    NO_GRANT = "no_grant"
    JOIN_REQUIRED = "join_required"
    AD_REQUIRED = "ad_required"
    AD_ISSUED = "ad_issued"
    GRANTED = "granted"
    DENIED = "denied"
    UNAVAILABLE = "unavailable"


class AccessOutcome(BaseModel):
    """What the flow decided for this request; the transport renders it."""

    state: AccessState
    retryable: bool = Field(False, description="True = ask the user to try again (gate/store failure)")
    redirect_url: str | None = Field(None, description="Ad gate short link (AD_ISSUED)")
    deny_reason: DenyReason | None = None
    media_hash: str | None = None
    album: AlbumView | None = None
    content_missing: bool = Field(
        False,
        description="Access granted but the requested album no longer exists",
    )
    time_remaining: str | None = None
    expires_at: int | None = None
    invite_links: tuple[str, ...] = ()

    model_config = {"frozen": True}
