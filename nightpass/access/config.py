"""
Access config: typed wrappers over nightpass.core.config for pass/token/delivery timings.
"""
from __future__ import annotations

from nightpass.core.clock import hours_to_ms
from nightpass.core.config import settings


def get_token_secret() -> str:
    return settings.token_secret


def get_token_ttl_ms() -> int:
    return hours_to_ms(settings.token_ttl_hours)


def get_access_window_ms() -> int:
    return hours_to_ms(settings.access_window_hours)


def get_access_window_hours() -> int:
    return settings.access_window_hours


def get_retraction_delay_seconds() -> int:
    return settings.retraction_delay_seconds


def get_bot_username() -> str:
    return settings.telegram_bot_username
