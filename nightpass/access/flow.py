"""
AccessFlow: decides, per request, how a user gets (or already has) a pass.

request_access:  live grant -> GRANTED
                 not in every private channel -> JOIN_REQUIRED
                 ads disabled -> grant directly -> GRANTED
                 ads enabled -> mint token, wrap its return link in the ad gate,
                 record the token -> AD_ISSUED (gate failure -> AD_REQUIRED, retryable)
activate:        verify -> lookup -> activate (atomic) -> grant -> GRANTED,
                 any failed step -> DENIED; store failure -> UNAVAILABLE.

A token bound to a media hash also resolves that album; a vanished album only
sets content_missing, the pass is still granted.
"""
from __future__ import annotations

import logging

from nightpass.access.config import get_access_window_ms
from nightpass.access.links import token_return_link
from nightpass.access.models import (
    AccessOutcome,
    AccessState,
    AlbumView,
    DenyReason,
    RuntimeConfig,
)
from nightpass.access.tokens import TokenCodec
from nightpass.core.clock import Clock, format_remaining, now_ms
from nightpass.core.errors import GateUnavailable, StoreUnavailable
from nightpass.services.ad_gate.base import ExternalGate
from nightpass.services.grants.service import GrantStore
from nightpass.services.media.service import MediaRegistry
from nightpass.services.membership.service import MembershipOracle
from nightpass.services.tokens.service import TokenLedger
from nightpass.utils.metrics import access_requests_total, token_activations_total, tokens_minted_total

logger = logging.getLogger(__name__)


class AccessFlow:
    def __init__(
        self,
        grants: GrantStore,
        ledger: TokenLedger,
        codec: TokenCodec,
        media: MediaRegistry,
        gate: ExternalGate | None = None,
        membership: MembershipOracle | None = None,
        window_ms: int | None = None,
        clock: Clock = now_ms,
    ) -> None:
        self.grants = grants
        self.ledger = ledger
        self.codec = codec
        self.media = media
        self.gate = gate
        self.membership = membership
        self.window_ms = window_ms if window_ms is not None else get_access_window_ms()
        self._clock = clock

    # ------------------------------------------------------------------
    # Request access
    # ------------------------------------------------------------------

    def request_access(self, user_id: str, config: RuntimeConfig, media_hash: str | None = None) -> AccessOutcome:
        user_id = str(user_id)
        try:
            outcome = self._request_access(user_id, config, media_hash or None)
        except StoreUnavailable:
            logger.warning("access_request_unavailable", extra={"user_id": user_id})
            outcome = AccessOutcome(state=AccessState.UNAVAILABLE, retryable=True, media_hash=media_hash)
        access_requests_total.labels(state=outcome.state.value).inc()
        return outcome

    def _request_access(self, user_id: str, config: RuntimeConfig, media_hash: str | None) -> AccessOutcome:
        grant = self.grants.get_active(user_id)
        if grant is not None:
            return self._granted(user_id, grant.expires, media_hash)

        if config.private_channel_ids:
            if self.membership is None or not self.membership.is_member_of_all(config.private_channel_ids, user_id):
                logger.info("access_join_required", extra={"user_id": user_id})
                return AccessOutcome(
                    state=AccessState.JOIN_REQUIRED,
                    media_hash=media_hash,
                    invite_links=config.channel_invite_links,
                )

        if not config.ad_enabled:
            grant = self.grants.grant(user_id, self.window_ms)
            logger.info("access_granted_direct", extra={"user_id": user_id})
            return self._granted(user_id, grant.expires, media_hash)

        return self._issue_ad_token(user_id, media_hash)

    def _issue_ad_token(self, user_id: str, media_hash: str | None) -> AccessOutcome:
        if self.gate is None:
            logger.warning("ad_gate_missing", extra={"user_id": user_id})
            return AccessOutcome(state=AccessState.AD_REQUIRED, retryable=True, media_hash=media_hash)

        token = self.codec.mint(user_id)
        try:
            redirect_url = self.gate.request_redirect(token_return_link(token))
        except GateUnavailable as e:
            # nothing recorded for a failed gate call
            logger.warning("ad_gate_failed", extra={"user_id": user_id, "error": str(e)})
            return AccessOutcome(state=AccessState.AD_REQUIRED, retryable=True, media_hash=media_hash)

        expires_at = self._clock() + self.codec.ttl_ms
        self.ledger.record(token, user_id, media_hash, expires_at)
        tokens_minted_total.inc()
        logger.info("token_minted", extra={"user_id": user_id, "media_hash": media_hash})
        return AccessOutcome(
            state=AccessState.AD_ISSUED,
            redirect_url=redirect_url,
            media_hash=media_hash,
            expires_at=expires_at,
        )

    # ------------------------------------------------------------------
    # Token return
    # ------------------------------------------------------------------

    def activate(self, user_id: str, token: str) -> AccessOutcome:
        """User came back through the ad gate with token. Steps run strictly in order."""
        user_id = str(user_id)
        check = self.codec.check(token, user_id)
        if not check.valid:
            return self._denied(user_id, check.reason)

        try:
            record = self.ledger.lookup(token)
            if record is None:
                return self._denied(user_id, DenyReason.UNKNOWN)
            if record.used:
                return self._denied(user_id, DenyReason.REPLAYED)
            if record.owner_id != user_id:
                return self._denied(user_id, DenyReason.OWNER_MISMATCH)
            media_hash = record.media_hash or None

            if not self.ledger.activate(token):
                # lost the race to a concurrent activation
                return self._denied(user_id, DenyReason.REPLAYED)

            grant = self.grants.grant(user_id, self.window_ms)
        except StoreUnavailable:
            logger.warning("token_activation_unavailable", extra={"user_id": user_id})
            token_activations_total.labels(outcome="unavailable").inc()
            return AccessOutcome(state=AccessState.UNAVAILABLE, retryable=True)

        token_activations_total.labels(outcome="granted").inc()
        logger.info("token_activated", extra={"user_id": user_id, "media_hash": media_hash})
        return self._granted(user_id, grant.expires, media_hash)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _granted(self, user_id: str, expires: int, media_hash: str | None) -> AccessOutcome:
        album: AlbumView | None = None
        content_missing = False
        if media_hash:
            try:
                album = self.media.resolve(media_hash)
            except StoreUnavailable:
                logger.warning("album_resolve_unavailable", extra={"user_id": user_id, "media_hash": media_hash})
            content_missing = album is None
            if content_missing:
                logger.info("album_missing", extra={"user_id": user_id, "media_hash": media_hash})
        return AccessOutcome(
            state=AccessState.GRANTED,
            media_hash=media_hash,
            album=album,
            content_missing=content_missing,
            expires_at=expires,
            time_remaining=format_remaining(max(0, expires - self._clock())),
        )

    def _denied(self, user_id: str, reason: DenyReason | None) -> AccessOutcome:
        reason = reason or DenyReason.MALFORMED
        token_activations_total.labels(outcome=reason.value).inc()
        logger.info("token_activation_denied", extra={"user_id": user_id, "reason": reason.value})
        return AccessOutcome(state=AccessState.DENIED, deny_reason=reason)
