from abc import ABC, abstractmethod


class ExternalGate(ABC):
    """Ad/redirect service: wraps a long URL in a link that is only reachable after the ad step."""

    @abstractmethod
    def request_redirect(self, long_url: str) -> str:
        """Return the short URL. Raises GateUnavailable on any failure."""
        raise NotImplementedError
