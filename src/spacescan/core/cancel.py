"""Cooperative cancellation shared by the walk and keep-alive tasks."""

from __future__ import annotations

import asyncio


class CancelToken:
    """One-shot cancellation flag.

    Traversal code polls :attr:`is_set` between steps; long-lived tasks
    can ``await token.wait()`` instead.
    """

    def __init__(self) -> None:
        self._event = asyncio.Event()

    @property
    def is_set(self) -> bool:
        return self._event.is_set()

    def set(self) -> None:
        self._event.set()

    async def wait(self) -> None:
        await self._event.wait()
