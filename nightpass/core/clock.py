"""
Time source for the access core. All stored timestamps are epoch milliseconds
(the same unit the token carries), so services take a Clock and tests pass a fake.
"""
import time
from typing import Callable

Clock = Callable[[], int]

MS_PER_MINUTE = 60 * 1000
MS_PER_HOUR = 60 * MS_PER_MINUTE


def now_ms() -> int:
    return int(time.time() * 1000)


def hours_to_ms(hours: float) -> int:
    return int(hours * MS_PER_HOUR)


def format_remaining(remaining_ms: int) -> str:
    """12h 5m style, as shown to users."""
    hours = remaining_ms // MS_PER_HOUR
    minutes = (remaining_ms % MS_PER_HOUR) // MS_PER_MINUTE
    return f"{hours}h {minutes}m"
