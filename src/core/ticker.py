"""
CareMinder — Tickers.

A ticker turns time into discrete "evaluate at T" calls to a handler, so the
alert check runs the same way under a real timer and under a test that steps
through chosen instants.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Protocol

logger = logging.getLogger(__name__)

TickHandler = Callable[[datetime], Awaitable[Any]]


class Ticker(Protocol):
    """Source of evaluation ticks."""

    def start(self, handler: TickHandler) -> None: ...

    def stop(self) -> None: ...


class ManualTicker:
    """Ticker driven by explicit tick() calls."""

    def __init__(self) -> None:
        self._handler: TickHandler | None = None
        self.ticks: list[datetime] = []

    @property
    def running(self) -> bool:
        return self._handler is not None

    def start(self, handler: TickHandler) -> None:
        self._handler = handler

    def stop(self) -> None:
        self._handler = None

    async def tick(self, at: datetime) -> Any:
        """Evaluate at `at`. Ignored once stopped."""
        if self._handler is None:
            logger.debug("Tick at %s ignored: ticker stopped", at)
            return None
        self.ticks.append(at)
        return await self._handler(at)

    async def run(self, instants: list[datetime]) -> list[Any]:
        return [await self.tick(at) for at in instants]
