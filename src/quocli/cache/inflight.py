"""Coalescing of concurrent requests for the same expensive computation.

The first caller for a key becomes the owner and runs the computation; any
caller that arrives while it is running waits on the owner's ``Future`` and
receives the same result (or the same exception).  No lock is held while
the computation runs.
"""

import logging
import threading
from collections.abc import Callable
from concurrent.futures import Future
from typing import TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRegistry:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._pending: dict[str, Future] = {}

    def in_flight(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def run(self, key: str, compute: Callable[[], T], timeout: float | None = None) -> T:
        """Run *compute* once per key, sharing the result with late arrivals.

        *timeout* only bounds how long a waiter blocks; the owner always
        runs to completion.
        """
        with self._lock:
            future = self._pending.get(key)
            owner = future is None
            if owner:
                future = Future()
                self._pending[key] = future

        if not owner:
            logger.debug("Joining in-flight request %s", key[:12])
            return future.result(timeout=timeout)

        try:
            result = compute()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._pending.pop(key, None)
