"""
Infrastructure errors. Deny paths (bad token, replay, not a member) are outcomes,
not exceptions; these are only raised when a backing store or remote service fails.
"""


class NightpassError(Exception):
    """Base class for nightpass errors."""


class StoreUnavailable(NightpassError):
    """Database read/write failed. Retryable."""


class GateUnavailable(NightpassError):
    """Ad gate did not return a redirect (HTTP error, timeout, bad status, open circuit)."""


class SinkError(NightpassError):
    """Transport failed to emit or retract a message."""


class MessageNotFound(SinkError):
    """Message to retract is already gone."""
