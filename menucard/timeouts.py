# menucard/timeouts.py
from __future__ import annotations

import logging
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from typing import TypeVar

from menucard.errors import UpstreamTimeout

log = logging.getLogger(__name__)

T = TypeVar("T")

# Shared pool for bounded external calls. Threads that outlive their timeout
# finish in the background; their result is discarded.
_POOL = ThreadPoolExecutor(max_workers=16, thread_name_prefix="menucard-call")


def call_with_timeout(fn: Callable[..., T], *args, timeout_s: float, operation: str, **kwargs) -> T:
    """
    Run ``fn(*args, **kwargs)`` and give up after ``timeout_s`` seconds.

    Raises UpstreamTimeout on expiry; any exception raised by ``fn`` propagates unchanged.
    """
    future = _POOL.submit(fn, *args, **kwargs)
    try:
        return future.result(timeout=timeout_s)
    except FutureTimeout as e:
        future.cancel()
        log.warning("%s timed out after %.1fs", operation, timeout_s)
        raise UpstreamTimeout(f"{operation} timed out after {timeout_s:.1f}s") from e
