"""
Cooperative cancellation shared by every worker of one run.
"""

import asyncio


class CancelToken:
    """
    One-shot cancellation flag.

    ``cancel()`` is idempotent; waiters are released on the first call and
    later calls do nothing.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
