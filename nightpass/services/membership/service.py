"""
Channel membership check (getChatMember). Fails closed: timeout/error -> UNKNOWN,
and UNKNOWN is never treated as membership.
"""
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from enum import Enum

from nightpass.core.config import settings
from nightpass.core.errors import SinkError
from nightpass.services.telegram.client import TelegramClient

logger = logging.getLogger(__name__)

MEMBER_STATUSES = ("member", "administrator", "creator")


class Membership(str, Enum):
    MEMBER = "member"
    NOT_MEMBER = "not_member"
    UNKNOWN = "unknown"


class MembershipOracle(ABC):
    @abstractmethod
    def check_membership(self, channel_id: str, user_id: str) -> Membership:
        raise NotImplementedError

    def is_member_of_all(self, channel_ids: tuple[str, ...] | list[str], user_id: str) -> bool:
        """True only if every check says MEMBER. No channels -> True."""
        if not channel_ids:
            return True
        if len(channel_ids) == 1:
            return self.check_membership(channel_ids[0], user_id) == Membership.MEMBER
        with ThreadPoolExecutor(max_workers=len(channel_ids)) as pool:
            results = list(pool.map(lambda c: self.check_membership(c, user_id), channel_ids))
        return all(r == Membership.MEMBER for r in results)


class TelegramMembershipOracle(MembershipOracle):
    def __init__(self, client: TelegramClient, timeout: float | None = None) -> None:
        self.client = client
        self.timeout = timeout if timeout is not None else settings.membership_check_timeout

    def check_membership(self, channel_id: str, user_id: str) -> Membership:
        try:
            status = self.client.get_chat_member_status(channel_id, user_id, timeout=self.timeout)
        except (SinkError, ValueError) as e:
            logger.warning(
                "membership_check_failed",
                extra={"user_id": str(user_id), "chat_id": str(channel_id), "error": str(e)},
            )
            return Membership.UNKNOWN
        return Membership.MEMBER if status in MEMBER_STATUSES else Membership.NOT_MEMBER
