"""Redis-backed breaker storage with a mocked Redis client."""
from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import pybreaker
import pytest

from nightpass.services.circuit_breaker import RedisCircuitBreakerStorage, get_circuit_breaker


def _storage(redis_client):
    with patch("nightpass.services.circuit_breaker.redis.Redis.from_url", return_value=redis_client):
        return RedisCircuitBreakerStorage("ad_gate")


class TestRedisCircuitBreakerStorage:
    def test_defaults_to_closed(self):
        client = MagicMock()
        client.get.return_value = None
        storage = _storage(client)
        assert storage.state == pybreaker.STATE_CLOSED
        assert storage.counter == 0
        assert storage.opened_at is None

    def test_state_written_with_ttl(self):
        client = MagicMock()
        storage = _storage(client)
        storage.state = pybreaker.STATE_OPEN
        key, value = client.set.call_args[0]
        assert key == "cb:ad_gate:state"
        assert value == pybreaker.STATE_OPEN
        assert client.set.call_args[1]["ex"] > 0

    def test_counter(self):
        client = MagicMock()
        client.get.return_value = "3"
        storage = _storage(client)
        storage.increment_counter()
        client.incr.assert_called_once_with("cb:ad_gate:counter")
        assert storage.counter == 3

    def test_opened_at_round_trip(self):
        client = MagicMock()
        storage = _storage(client)
        moment = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)
        storage.opened_at = moment
        client.get.return_value = client.set.call_args[0][1]
        assert storage.opened_at == moment

    def test_success_counter(self):
        client = MagicMock()
        client.get.return_value = "2"
        storage = _storage(client)
        storage.increment_success_counter()
        client.incr.assert_called_once_with("cb:ad_gate:success")
        assert storage.success_counter == 2
        storage.reset_success_counter()
        client.delete.assert_called_once_with("cb:ad_gate:success")


class FakeRedis:
    """Just enough of a redis client for the breaker storage."""

    def __init__(self):
        self.data = {}

    def get(self, key):
        value = self.data.get(key)
        return None if value is None else str(value)

    def set(self, key, value, ex=None):
        self.data[key] = value

    def incr(self, key):
        self.data[key] = int(self.data.get(key, 0)) + 1
        return self.data[key]

    def expire(self, key, seconds):
        return key in self.data

    def delete(self, key):
        self.data.pop(key, None)


class TestBreakerOverRedisStorage:
    def test_trial_success_closes_half_open_breaker(self):
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=0, state_storage=_storage(FakeRedis()))

        def failing():
            raise ConnectionError("upstream down")

        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(failing)
        assert breaker.current_state == pybreaker.STATE_OPEN

        assert breaker.call(lambda: "ok") == "ok"
        assert breaker.current_state == pybreaker.STATE_CLOSED

    def test_trial_failure_reopens(self):
        breaker = pybreaker.CircuitBreaker(fail_max=1, reset_timeout=0, state_storage=_storage(FakeRedis()))

        def failing():
            raise ConnectionError("upstream down")

        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(failing)
        with pytest.raises(pybreaker.CircuitBreakerError):
            breaker.call(failing)
        assert breaker.current_state == pybreaker.STATE_OPEN


def test_memory_breaker_is_cached():
    assert get_circuit_breaker("test_breaker") is get_circuit_breaker("test_breaker")
