"""Cooperative cancellation for upstream calls owned by one request."""

import asyncio
import logging
from collections.abc import Awaitable
from typing import TypeVar

from admin_portal.errors import RequestCancelledError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class CancellationToken:
    """Cancelled when the owning request is torn down.

    Upstream clients pass every request through ``run`` so an in-flight
    call is abandoned as soon as the token fires.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()
        self.reason: str | None = None

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "cancelled") -> None:
        if not self._event.is_set():
            self.reason = reason
            self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RequestCancelledError(self.reason or "cancelled")

    async def run(self, awaitable: Awaitable[T]) -> T:
        """Await ``awaitable`` unless the token fires first."""
        if self.cancelled:
            if asyncio.iscoroutine(awaitable):
                awaitable.close()
            self.raise_if_cancelled()
        task = asyncio.ensure_future(awaitable)
        waiter = asyncio.ensure_future(self._event.wait())
        try:
            done, _ = await asyncio.wait(
                {task, waiter}, return_when=asyncio.FIRST_COMPLETED
            )
        finally:
            waiter.cancel()
            if not task.done():
                task.cancel()
        if task in done:
            return task.result()
        logger.info("Upstream call abandoned: %s", self.reason)
        raise RequestCancelledError(self.reason or "cancelled")


async def guarded(awaitable: Awaitable[T], token: CancellationToken | None) -> T:
    """Await directly when no token was supplied."""
    if token is None:
        return await awaitable
    return await token.run(awaitable)
