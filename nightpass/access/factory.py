"""
Wiring for one request: builds AccessFlow / DeliveryScheduler on a session
with the gate and membership oracle taken from the runtime config snapshot.
"""
from __future__ import annotations

from sqlalchemy.orm import Session

from nightpass.access.flow import AccessFlow
from nightpass.access.models import RuntimeConfig
from nightpass.access.tokens import get_token_codec
from nightpass.core.clock import Clock, now_ms
from nightpass.core.config import settings
from nightpass.services.ad_gate.earnlinks import EarnLinksGate
from nightpass.services.delivery.base import Sink
from nightpass.services.delivery.service import DeliveryScheduler
from nightpass.services.grants.service import GrantStore
from nightpass.services.media.service import MediaRegistry
from nightpass.services.membership.service import TelegramMembershipOracle
from nightpass.services.telegram.client import TelegramClient
from nightpass.services.tokens.service import TokenLedger


def build_access_flow(
    db: Session,
    config: RuntimeConfig,
    telegram: TelegramClient,
    clock: Clock = now_ms,
) -> AccessFlow:
    gate = None
    if config.ad_enabled and config.ad_gate_domain and config.ad_gate_api_token:
        gate = EarnLinksGate(config.ad_gate_domain, config.ad_gate_api_token)
    membership = TelegramMembershipOracle(telegram) if config.private_channel_ids else None
    return AccessFlow(
        grants=GrantStore(db, clock),
        ledger=TokenLedger(db, clock),
        codec=get_token_codec(clock),
        media=MediaRegistry(db),
        gate=gate,
        membership=membership,
        clock=clock,
    )


def build_delivery(db: Session, sink: Sink, clock: Clock = now_ms) -> DeliveryScheduler:
    return DeliveryScheduler(db, sink, GrantStore(db, clock), clock=clock, more_url=settings.help_url or None)
