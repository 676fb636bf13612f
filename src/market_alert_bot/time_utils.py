"""
Time helpers shared by the poll loop and the delivery retry policy.

Usage:
    from market_alert_bot.time_utils import now, sleep_interruptible

    current_time = now()

    # Sleep up to 30s but return early once the stop flag flips
    completed = sleep_interruptible(30, lambda: STOP)
"""

import time as _real_time
from datetime import datetime, timezone
from typing import Callable, Optional


def now() -> datetime:
    """Current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def monotonic() -> float:
    return _real_time.monotonic()


def sleep_interruptible(
    seconds: float, stop_flag_getter: Optional[Callable[[], bool]] = None
) -> bool:
    """
    Wait up to ``seconds``, polling ``stop_flag_getter`` every 200 ms.

    Args:
        seconds: Upper bound on the wait; zero or less only checks the flag
        stop_flag_getter: Returns True once shutdown has been requested

    Returns:
        False when the flag cut the wait short, True otherwise
    """
    if seconds <= 0:
        return not (stop_flag_getter and stop_flag_getter())

    if stop_flag_getter is None:
        _real_time.sleep(seconds)
        return True

    end_time = _real_time.monotonic() + seconds
    while True:
        if stop_flag_getter():
            return False
        remaining = end_time - _real_time.monotonic()
        if remaining <= 0:
            return True
        _real_time.sleep(min(0.2, remaining))
