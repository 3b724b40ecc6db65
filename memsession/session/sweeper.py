"""
Expiry Sweeper: Periodic Producer of SWEEP Commands

Sleeps for the current sweep period, submits one SWEEP command to the
actor and waits for its reply before sleeping again, so sweeps never
pile up behind a slow actor. The period is re-read before every sleep;
a change takes effect from the next tick.
"""

from __future__ import annotations

import asyncio
from typing import Callable, Optional

from memsession.observability.logging import StructuredLogger
from memsession.session.actor import Command, CommandKind, SessionActor

_log = StructuredLogger(__name__)


class ExpirySweeper:
    """
    Background task driving the actor's expiry sweep.

    Usage:
        sweeper = ExpirySweeper(actor, period_s=lambda: store.sweep_period)
        sweeper.start()
        ...
        await sweeper.stop()
    """

    __slots__ = ("_actor", "_period_s", "_task", "_ticks")

    def __init__(
        self,
        actor: SessionActor,
        period_s: Callable[[], float],
    ) -> None:
        self._actor = actor
        self._period_s = period_s
        self._task: Optional[asyncio.Task[None]] = None
        self._ticks = 0

    def start(self) -> None:
        if self._task is not None:
            return
        self._task = asyncio.get_running_loop().create_task(
            self._loop(), name="memsession-sweeper",
        )

    async def stop(self) -> None:
        """Cancel the timer task."""
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None

    @property
    def ticks(self) -> int:
        """Completed sweeps."""
        return self._ticks

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def _loop(self) -> None:
        with _log.context(component="expiry-sweeper"):
            while True:
                await asyncio.sleep(self._period_s())
                result = await self._actor.submit(Command(CommandKind.SWEEP))
                if result.is_err():
                    _log.debug("Sweeper exiting", reason=result.error.message)
                    return
                self._ticks += 1
