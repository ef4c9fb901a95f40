"""
client/single_flight.py -- Coalesce concurrent calls into one in-flight call.

The first caller of run() becomes the leader and actually awaits the
operation. Every caller that arrives while the leader is still running is
parked on its own future in the waiter list; when the leader finishes, all
waiters are resolved with the leader's result or rejected with the leader's
exception, and the coordinator is reset so the next run() starts a fresh call.

There is no ordering guarantee between waiters beyond "everyone sees the
same outcome". One SingleFlight instance coordinates one logical operation;
it is bound to the event loop that first uses it.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable
from typing import Generic, TypeVar

T = TypeVar("T")


class SingleFlight(Generic[T]):
    def __init__(self) -> None:
        self._pending = False
        self._waiters: list[asyncio.Future[T]] = []

    @property
    def pending(self) -> bool:
        """True while a leader call is in flight."""
        return self._pending

    @property
    def waiter_count(self) -> int:
        return len(self._waiters)

    async def run(self, operation: Callable[[], Awaitable[T]]) -> T:
        if self._pending:
            waiter: asyncio.Future[T] = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            return await waiter

        self._pending = True
        try:
            result = await operation()
        except BaseException as exc:
            self._settle(error=exc)
            raise
        self._settle(result=result)
        return result

    def _settle(self, result: T | None = None, error: BaseException | None = None) -> None:
        """Tear down the in-flight state, then resolve every parked waiter."""
        waiters, self._waiters = self._waiters, []
        self._pending = False
        for waiter in waiters:
            if waiter.done():
                # Waiter was cancelled by its own caller.
                continue
            if isinstance(error, asyncio.CancelledError):
                waiter.cancel()
            elif error is not None:
                waiter.set_exception(error)
            else:
                waiter.set_result(result)
