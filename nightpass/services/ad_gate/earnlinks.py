"""
EarnLinks-style shortener: GET https://<domain>/api?api=<token>&url=<long_url>
-> {"status": "success", "shortenedUrl": "..."}.
Calls go through a circuit breaker; every failure surfaces as GateUnavailable.
"""
import logging
import time

import httpx
import pybreaker

from nightpass.core.config import settings
from nightpass.core.errors import GateUnavailable
from nightpass.services.ad_gate.base import ExternalGate
from nightpass.services.circuit_breaker import get_circuit_breaker
from nightpass.utils.metrics import ad_gate_request_duration_seconds, ad_gate_requests_total

logger = logging.getLogger(__name__)


class EarnLinksGate(ExternalGate):
    def __init__(
        self,
        domain: str,
        api_token: str,
        timeout: float | None = None,
        breaker: pybreaker.CircuitBreaker | None = None,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.domain = domain
        self.api_token = api_token
        self.timeout = timeout if timeout is not None else settings.http_client_timeout
        self.breaker = breaker or get_circuit_breaker("ad_gate")
        self._transport = transport

    def request_redirect(self, long_url: str) -> str:
        if not self.domain or not self.api_token:
            raise GateUnavailable("ad gate is not configured")
        start = time.time()
        try:
            short_url = self.breaker.call(self._shorten, long_url)
        except pybreaker.CircuitBreakerError as e:
            ad_gate_requests_total.labels(status="circuit_open").inc()
            raise GateUnavailable("ad gate circuit open") from e
        except GateUnavailable:
            ad_gate_requests_total.labels(status="error").inc()
            raise
        finally:
            ad_gate_request_duration_seconds.observe(time.time() - start)
        ad_gate_requests_total.labels(status="success").inc()
        return short_url

    def _shorten(self, long_url: str) -> str:
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                resp = client.get(
                    f"https://{self.domain}/api",
                    params={"api": self.api_token, "url": long_url},
                )
                resp.raise_for_status()
                result = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning("ad_gate_request_failed", extra={"error": str(e)})
            raise GateUnavailable(str(e)) from e

        if result.get("status") != "success" or not result.get("shortenedUrl"):
            message = result.get("message") or "unexpected response"
            logger.warning("ad_gate_rejected", extra={"error": str(message)})
            raise GateUnavailable(str(message))
        return result["shortenedUrl"]
