"""Unit tests for TokenCodec: format, owner binding, age, signature."""
import unittest

from nightpass.access.models import DenyReason
from nightpass.access.tokens import TokenCodec, looks_like_token
from nightpass.core.clock import MS_PER_HOUR

SECRET = "unit-test-secret-0123456789"
TTL = 18 * MS_PER_HOUR
T0 = 1_700_000_000_000


class _Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


class TestTokenCodec(unittest.TestCase):
    def setUp(self):
        self.clock = _Clock(T0)
        self.codec = TokenCodec(SECRET, TTL, clock=self.clock)

    def test_mint_format(self):
        token = self.codec.mint("42")
        prefix, owner, signature = token.split("-")
        self.assertEqual(prefix, f"t{T0}")
        self.assertEqual(owner, "42")
        self.assertEqual(len(signature), 16)
        self.assertTrue(looks_like_token(token))

    def test_fresh_token_verifies_for_owner(self):
        token = self.codec.mint("42")
        self.assertTrue(self.codec.verify(token, "42"))

    def test_other_user_is_owner_mismatch(self):
        token = self.codec.mint("42")
        check = self.codec.check(token, "43")
        self.assertFalse(check.valid)
        self.assertEqual(check.reason, DenyReason.OWNER_MISMATCH)

    def test_valid_at_exactly_ttl(self):
        token = self.codec.mint("42")
        self.clock.now = T0 + TTL
        self.assertTrue(self.codec.verify(token, "42"))

    def test_expired_one_ms_after_ttl(self):
        token = self.codec.mint("42")
        self.clock.now = T0 + TTL + 1
        check = self.codec.check(token, "42")
        self.assertEqual(check.reason, DenyReason.EXPIRED)

    def test_single_char_signature_change_is_forged(self):
        token = self.codec.mint("42")
        last = token[-1]
        tampered = token[:-1] + ("0" if last != "0" else "1")
        check = self.codec.check(tampered, "42")
        self.assertFalse(check.valid)
        self.assertEqual(check.reason, DenyReason.FORGED)

    def test_other_secret_is_forged(self):
        token = TokenCodec("another-secret-0123456789", TTL, clock=self.clock).mint("42")
        self.assertEqual(self.codec.check(token, "42").reason, DenyReason.FORGED)

    def test_changed_issued_at_is_forged(self):
        token = self.codec.mint("42")
        _, owner, signature = token.split("-")
        shifted = f"t{T0 + 1000}-{owner}-{signature}"
        self.assertEqual(self.codec.check(shifted, "42").reason, DenyReason.FORGED)

    def test_malformed_inputs(self):
        for value in (None, "", "abc", "t-42-0123456789abcdef", "tabc-42-0123456789abcdef",
                      f"t{T0}-42", f"t{T0}-42-xyz", f"t{T0}--0123456789abcdef",
                      f"t{T0}-42-0123456789abcdef-extra"):
            with self.subTest(value=value):
                check = self.codec.check(value, "42")
                self.assertFalse(check.valid)
                self.assertEqual(check.reason, DenyReason.MALFORMED)

    def test_owner_checked_before_age(self):
        token = self.codec.mint("42")
        self.clock.now = T0 + TTL + 1
        self.assertEqual(self.codec.check(token, "43").reason, DenyReason.OWNER_MISMATCH)

    def test_owner_with_separator_rejected(self):
        with self.assertRaises(ValueError):
            self.codec.mint("4-2")
        with self.assertRaises(ValueError):
            self.codec.mint("")

    def test_signature_depends_only_on_owner_and_time(self):
        a = TokenCodec(SECRET, TTL, clock=self.clock).mint("42")
        b = TokenCodec(SECRET, TTL, clock=self.clock).mint("42")
        self.assertEqual(a, b)

    def test_empty_secret_rejected(self):
        with self.assertRaises(ValueError):
            TokenCodec("", TTL)


class TestLooksLikeToken(unittest.TestCase):
    def test_album_payload_is_not_token(self):
        self.assertFalse(looks_like_token("pompom_abc123"))
        self.assertFalse(looks_like_token(None))
