"""Poll-with-timeout barrier for the kernel device namespace.

After a partition table change or a device activation, the kernel creates
the new device nodes asynchronously. Instead of sleeping a fixed amount of
time, callers poll a check until it reports the expected result.
"""

from __future__ import annotations

import os
import time
from typing import Callable, Optional, TypeVar

from disklayout.config import settings
from disklayout.logging import LoggerFactory
from disklayout.storage.exceptions import SettleTimeoutError

T = TypeVar("T")

log = LoggerFactory.for_layout()


def poll(
    check: Callable[[], Optional[T]],
    description: str,
    *,
    timeout: Optional[float] = None,
    interval: Optional[float] = None,
    backoff: Optional[float] = None,
    max_interval: Optional[float] = None,
) -> T:
    """Call check() until it returns something other than None.

    The delay between attempts starts at ``interval`` and is multiplied by
    ``backoff`` after each miss, capped at ``max_interval``. The check is
    always attempted at least once.

    Raises:
        SettleTimeoutError: If the check still returns None after ``timeout`` seconds
    """
    if timeout is None:
        timeout = settings.get_float("settle_timeout", settings.DEFAULT_SETTLE_TIMEOUT)
    if interval is None:
        interval = settings.get_float("settle_interval", settings.DEFAULT_SETTLE_INTERVAL)
    if backoff is None:
        backoff = settings.get_float("settle_backoff", settings.DEFAULT_SETTLE_BACKOFF)
    if max_interval is None:
        max_interval = settings.get_float(
            "settle_max_interval", settings.DEFAULT_SETTLE_MAX_INTERVAL
        )

    deadline = time.monotonic() + timeout
    delay = interval
    attempt = 0
    while True:
        attempt += 1
        result = check()
        if result is not None:
            if attempt > 1:
                log.debug(f"{description} settled after {attempt} attempts")
            return result
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise SettleTimeoutError(description, timeout)
        log.trace(f"Still waiting for {description} (attempt {attempt})")
        time.sleep(min(delay, remaining))
        delay = min(delay * backoff, max_interval)


def wait_for_path(path: str, **kwargs) -> str:
    """Wait until a device node (or any filesystem path) exists."""
    return poll(
        lambda: path if os.path.exists(path) else None,
        f"device node {path}",
        **kwargs,
    )
