"""AccessFlow end to end on SQLite with a fake clock, fake gate and fake membership."""
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlparse

import pytest

from nightpass.access.flow import AccessFlow
from nightpass.access.models import AccessState, DenyReason, RuntimeConfig
from nightpass.access.tokens import TokenCodec
from nightpass.core.clock import MS_PER_HOUR
from nightpass.core.errors import GateUnavailable, StoreUnavailable
from nightpass.models.access_token import TokenRecord
from nightpass.models.media import MediaAlbum, MediaItem
from nightpass.services.ad_gate.base import ExternalGate
from nightpass.services.grants.service import GrantStore
from nightpass.services.media.service import MediaRegistry
from nightpass.services.membership.service import Membership, MembershipOracle
from nightpass.services.tokens.service import TokenLedger

WINDOW = 18 * MS_PER_HOUR
SECRET = "flow-test-secret-0123456789"

ADS_ON = RuntimeConfig(ad_enabled=True)
ADS_OFF = RuntimeConfig(ad_enabled=False)


class FakeGate(ExternalGate):
    def __init__(self, fail=False):
        self.fail = fail
        self.calls = []

    def request_redirect(self, long_url):
        self.calls.append(long_url)
        if self.fail:
            raise GateUnavailable("boom")
        return "https://short.example/x1"


class FakeMembership(MembershipOracle):
    def __init__(self, statuses):
        self.statuses = statuses

    def check_membership(self, channel_id, user_id):
        return self.statuses.get(channel_id, Membership.UNKNOWN)


def _token_from_redirect(gate: FakeGate) -> str:
    return parse_qs(urlparse(gate.calls[-1]).query)["start"][0]


@pytest.fixture
def album(db):
    row = MediaAlbum(group_id="G1", hash="abc123", link_sent=True, views=0)
    db.add(row)
    db.flush()
    db.add(MediaItem(album_id=row.id, position=0, type="photo", file_ref="file-a"))
    db.add(MediaItem(album_id=row.id, position=1, type="video", file_ref="file-b"))
    db.commit()
    return row


@pytest.fixture
def make_flow(db, clock):
    def _make(gate=None, membership=None):
        return AccessFlow(
            grants=GrantStore(db, clock),
            ledger=TokenLedger(db, clock),
            codec=TokenCodec(SECRET, WINDOW, clock=clock),
            media=MediaRegistry(db),
            gate=gate,
            membership=membership,
            window_ms=WINDOW,
            clock=clock,
        )
    return _make


class TestRequestAccess:
    def test_ads_disabled_grants_directly(self, make_flow, db, clock):
        flow = make_flow()
        start = clock.now
        outcome = flow.request_access("42", ADS_OFF)
        assert outcome.state == AccessState.GRANTED
        assert outcome.expires_at == start + WINDOW
        assert outcome.time_remaining == "18h 0m"
        assert db.query(TokenRecord).count() == 0

    def test_live_grant_short_circuits(self, make_flow, clock):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.grants.grant("42", WINDOW)
        outcome = flow.request_access("42", ADS_ON)
        assert outcome.state == AccessState.GRANTED
        assert gate.calls == []

    def test_ads_enabled_issues_token(self, make_flow, db, clock):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        outcome = flow.request_access("42", ADS_ON, media_hash="abc123")
        assert outcome.state == AccessState.AD_ISSUED
        assert outcome.redirect_url == "https://short.example/x1"
        assert outcome.expires_at == clock.now + WINDOW
        token = _token_from_redirect(gate)
        record = db.get(TokenRecord, token)
        assert record.owner_id == "42"
        assert record.media_hash == "abc123"
        assert record.used is False

    def test_gate_failure_records_nothing(self, make_flow, db):
        flow = make_flow(gate=FakeGate(fail=True))
        outcome = flow.request_access("42", ADS_ON, media_hash="abc123")
        assert outcome.state == AccessState.AD_REQUIRED
        assert outcome.retryable is True
        assert db.query(TokenRecord).count() == 0

    def test_no_gate_configured(self, make_flow):
        outcome = make_flow().request_access("42", ADS_ON)
        assert outcome.state == AccessState.AD_REQUIRED
        assert outcome.retryable is True

    def test_store_down_is_unavailable(self, clock):
        grants = MagicMock()
        grants.get_active.side_effect = StoreUnavailable("down")
        flow = AccessFlow(grants, MagicMock(), TokenCodec(SECRET, WINDOW, clock=clock), MagicMock(), clock=clock)
        outcome = flow.request_access("42", ADS_ON)
        assert outcome.state == AccessState.UNAVAILABLE
        assert outcome.retryable is True


class TestMembershipGate:
    CONFIG = RuntimeConfig(
        ad_enabled=False,
        private_channel_ids=("-1001", "-1002"),
        channel_invite_links=("https://t.me/+a", "https://t.me/+b"),
    )

    def test_not_member_must_join(self, make_flow):
        membership = FakeMembership({"-1001": Membership.MEMBER, "-1002": Membership.NOT_MEMBER})
        outcome = make_flow(membership=membership).request_access("42", self.CONFIG, "abc123")
        assert outcome.state == AccessState.JOIN_REQUIRED
        assert outcome.invite_links == ("https://t.me/+a", "https://t.me/+b")
        assert outcome.media_hash == "abc123"

    def test_unknown_membership_counts_as_not_member(self, make_flow):
        membership = FakeMembership({"-1001": Membership.MEMBER})
        outcome = make_flow(membership=membership).request_access("42", self.CONFIG)
        assert outcome.state == AccessState.JOIN_REQUIRED

    def test_member_of_all_continues(self, make_flow):
        membership = FakeMembership({"-1001": Membership.MEMBER, "-1002": Membership.MEMBER})
        outcome = make_flow(membership=membership).request_access("42", self.CONFIG)
        assert outcome.state == AccessState.GRANTED

    def test_no_oracle_with_channels_requires_join(self, make_flow):
        assert make_flow().request_access("42", self.CONFIG).state == AccessState.JOIN_REQUIRED


class TestActivate:
    def test_full_ad_cycle(self, make_flow, album, clock):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON, media_hash="abc123")
        token = _token_from_redirect(gate)

        clock.advance(60_000)
        outcome = flow.activate("42", token)
        assert outcome.state == AccessState.GRANTED
        assert outcome.expires_at == clock.now + WINDOW
        assert outcome.media_hash == "abc123"
        assert [m.file_ref for m in outcome.album.media] == ["file-a", "file-b"]
        assert outcome.content_missing is False
        assert flow.grants.is_active("42")

        again = flow.activate("42", token)
        assert again.state == AccessState.DENIED
        assert again.deny_reason == DenyReason.REPLAYED

    def test_general_access_token(self, make_flow):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON)
        outcome = flow.activate("42", _token_from_redirect(gate))
        assert outcome.state == AccessState.GRANTED
        assert outcome.album is None
        assert outcome.content_missing is False

    def test_missing_album_still_grants(self, make_flow):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON, media_hash="gone00")
        outcome = flow.activate("42", _token_from_redirect(gate))
        assert outcome.state == AccessState.GRANTED
        assert outcome.content_missing is True
        assert outcome.album is None

    def test_other_user_cannot_use_token(self, make_flow):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON)
        outcome = flow.activate("43", _token_from_redirect(gate))
        assert outcome.deny_reason == DenyReason.OWNER_MISMATCH
        assert flow.grants.is_active("43") is False

    def test_expired_token(self, make_flow, clock):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON)
        clock.advance(WINDOW + 1)
        outcome = flow.activate("42", _token_from_redirect(gate))
        assert outcome.deny_reason == DenyReason.EXPIRED

    def test_valid_but_unrecorded_token_is_unknown(self, make_flow):
        flow = make_flow()
        token = flow.codec.mint("42")
        outcome = flow.activate("42", token)
        assert outcome.state == AccessState.DENIED
        assert outcome.deny_reason == DenyReason.UNKNOWN
        assert flow.grants.is_active("42") is False

    def test_malformed_token(self, make_flow):
        assert make_flow().activate("42", "garbage").deny_reason == DenyReason.MALFORMED

    def test_lost_activation_race_is_replayed(self, make_flow):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON)
        token = _token_from_redirect(gate)
        flow.ledger = MagicMock(wraps=flow.ledger)
        flow.ledger.activate.return_value = False
        outcome = flow.activate("42", token)
        assert outcome.deny_reason == DenyReason.REPLAYED
        assert flow.grants.is_active("42") is False

    def test_store_down_during_activation(self, make_flow):
        gate = FakeGate()
        flow = make_flow(gate=gate)
        flow.request_access("42", ADS_ON)
        token = _token_from_redirect(gate)
        flow.ledger = MagicMock()
        flow.ledger.lookup.side_effect = StoreUnavailable("down")
        outcome = flow.activate("42", token)
        assert outcome.state == AccessState.UNAVAILABLE
        assert outcome.retryable is True
