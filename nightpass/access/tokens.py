"""
Access token codec: t{issued_at_ms}-{owner_id}-{signature}.

signature = HMAC-SHA256(secret, "owner_id:issued_at")[:16] (hex). The token is
self-describing: verification needs only the string, the expected owner, the
secret and the clock. Expiry is measured from the embedded issued_at, not from
any stored record.
"""
from __future__ import annotations

import hashlib
import hmac
import logging
import re
from dataclasses import dataclass

from nightpass.access.config import get_token_secret, get_token_ttl_ms
from nightpass.access.models import DenyReason, TokenCheck
from nightpass.core.clock import Clock, now_ms

logger = logging.getLogger(__name__)

TOKEN_PREFIX = "t"
SIGNATURE_LENGTH = 16

_ISSUED_AT_RE = re.compile(r"^[0-9]{1,15}$")
_SIGNATURE_RE = re.compile(r"^[0-9a-f]{%d}$" % SIGNATURE_LENGTH)


@dataclass(frozen=True)
class ParsedToken:
    issued_at: int
    owner_id: str
    signature: str


class TokenCodec:
    def __init__(self, secret: str, ttl_ms: int, clock: Clock = now_ms) -> None:
        if not secret:
            raise ValueError("token secret must not be empty")
        if ttl_ms <= 0:
            raise ValueError("token ttl must be positive")
        self._secret = secret.encode("utf-8")
        self.ttl_ms = ttl_ms
        self._clock = clock

    def sign(self, owner_id: str, issued_at: int) -> str:
        message = f"{owner_id}:{issued_at}".encode("utf-8")
        return hmac.new(self._secret, message, hashlib.sha256).hexdigest()[:SIGNATURE_LENGTH]

    def mint(self, owner_id: str) -> str:
        owner_id = str(owner_id)
        if not owner_id or "-" in owner_id:
            # '-' is the field separator; such an id could never verify
            raise ValueError(f"owner id cannot be encoded in a token: {owner_id!r}")
        issued_at = self._clock()
        return f"{TOKEN_PREFIX}{issued_at}-{owner_id}-{self.sign(owner_id, issued_at)}"

    @staticmethod
    def parse(token: str | None) -> ParsedToken | None:
        """Structural parse only. None if the string is not a token."""
        if not token or not isinstance(token, str) or not token.startswith(TOKEN_PREFIX):
            return None
        parts = token[len(TOKEN_PREFIX):].split("-")
        if len(parts) != 3:
            return None
        issued_raw, owner_id, signature = parts
        if not _ISSUED_AT_RE.match(issued_raw) or not owner_id or not _SIGNATURE_RE.match(signature):
            return None
        return ParsedToken(issued_at=int(issued_raw), owner_id=owner_id, signature=signature)

    def check(self, token: str | None, expected_owner_id: str) -> TokenCheck:
        """
        Run all four checks (structure, owner, age, signature); report the first failure.
        Never raises.
        """
        parsed = self.parse(token)
        if parsed is None:
            return TokenCheck(valid=False, reason=DenyReason.MALFORMED)

        if parsed.owner_id != str(expected_owner_id):
            return TokenCheck(valid=False, reason=DenyReason.OWNER_MISMATCH, issued_at=parsed.issued_at)

        age = self._clock() - parsed.issued_at
        if age > self.ttl_ms:
            return TokenCheck(valid=False, reason=DenyReason.EXPIRED, issued_at=parsed.issued_at)

        expected = self.sign(parsed.owner_id, parsed.issued_at)
        if not hmac.compare_digest(expected, parsed.signature):
            logger.warning(
                "token_forged",
                extra={"user_id": str(expected_owner_id), "reason": DenyReason.FORGED.value},
            )
            return TokenCheck(valid=False, reason=DenyReason.FORGED, issued_at=parsed.issued_at)

        return TokenCheck(valid=True, issued_at=parsed.issued_at)

    def verify(self, token: str | None, expected_owner_id: str) -> bool:
        return self.check(token, expected_owner_id).valid


def looks_like_token(value: str | None) -> bool:
    """Cheap routing test for /start payloads; full validation is TokenCodec.check."""
    return bool(value) and value.startswith(TOKEN_PREFIX) and value.count("-") == 2


def get_token_codec(clock: Clock = now_ms) -> TokenCodec:
    return TokenCodec(get_token_secret(), get_token_ttl_ms(), clock=clock)
