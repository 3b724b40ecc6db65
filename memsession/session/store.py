"""
Session Store: Public Facade over the Session Actor

Callers use coroutines on SessionStore; each one validates its input,
submits a single command to the actor and awaits the reply. Failures
are returned as Err values, never retried.

Usage:
    async with SessionStore() as store:
        sid = SessionId.generate()
        session = (await store.create(sid, ttl=300)).unwrap()
        await session.set("cart", ["apple"])

        later = (await store.restore(sid)).unwrap()
        cart = (await later.get("cart")).unwrap()

        await store.destroy(sid)
"""

from __future__ import annotations

import math
from typing import Any, Optional, Union
from uuid import UUID

from memsession.core.config import StoreConfig
from memsession.core.errors import (
    ConfigurationError,
    InternalError,
    MemSessionError,
    SessionError,
)
from memsession.core.types import (
    Clock,
    Err,
    Ok,
    Result,
    SessionId,
    Timestamp,
    seconds_to_nanos,
)
from memsession.observability.logging import StructuredLogger
from memsession.session.actor import Command, CommandKind, SessionActor
from memsession.session.model import Mutation, Session
from memsession.session.sweeper import ExpirySweeper
from memsession.session.table import SessionTable, StoreStats

_log = StructuredLogger(__name__)

SessionKey = Union[UUID, str]


class SessionStore:
    """
    In-memory session store.

    Owns one SessionTable, the actor serializing access to it and the
    expiry sweeper. Must be used from within a running event loop; the
    first call starts the background tasks if start() was not called.
    Coroutines awaited on another thread's event loop are forwarded to
    the loop the store was started on.
    """

    __slots__ = (
        "_config", "_sweep_period_s", "_table", "_actor", "_sweeper",
        "__weakref__",
    )

    def __init__(
        self,
        config: Optional[StoreConfig] = None,
        clock: Clock = Timestamp.now,
    ) -> None:
        config = config or StoreConfig()
        _check_period(config.sweep_period_s)
        if config.ttl_divisor < 1:
            raise ConfigurationError.invalid(
                "ttl_divisor", config.ttl_divisor, "must be >= 1",
            )

        self._config = config
        self._sweep_period_s = config.sweep_period_s
        self._table = SessionTable(
            default_ttl=self._default_ttl_nanos,
            clock=clock,
            store=self,
        )
        self._actor = SessionActor(self._table, maxsize=config.queue_maxsize)
        self._sweeper = ExpirySweeper(self._actor, lambda: self._sweep_period_s)

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    async def start(self) -> None:
        """Start the actor and the expiry sweeper."""
        self._ensure_started()
        _log.info("Session store started", sweep_period_s=self._sweep_period_s)

    async def close(self) -> None:
        """
        Stop the sweeper, then the actor once queued commands are answered.

        Later calls return Err(InternalError.actor_halted). May be awaited
        from another thread's event loop; the shutdown then runs on the
        loop the store was started on.
        """
        if self._actor.foreign_caller():
            try:
                await self._actor.on_actor_loop(self.close())
            except InternalError:
                # The store's loop is gone; only the halted flag is left to set.
                await self._actor.stop()
            return
        await self._sweeper.stop()
        await self._actor.stop()
        _log.info("Session store closed", sessions=len(self._table))

    async def __aenter__(self) -> SessionStore:
        await self.start()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    def _ensure_started(self) -> None:
        if self._actor.halted is not None:
            return
        self._actor.start()
        self._sweeper.start()

    # -------------------------------------------------------------------------
    # Session operations
    # -------------------------------------------------------------------------
    async def create(
        self,
        sid: SessionKey,
        ttl: float = 0,
    ) -> Result[Session, MemSessionError]:
        """
        Create a session for sid.

        Args:
            sid: Session id (UUID or its string form)
            ttl: Idle seconds before expiry; non-positive selects half the
                current sweep period

        Returns:
            Ok[Session]: the new, active session
            Err[SessionError]: malformed_identifier or collision
            Err[ConfigurationError]: ttl is infinite or NaN
        """
        parsed = self._parse("SessionStore.create", sid)
        if parsed.is_err():
            return parsed
        key = parsed.unwrap()

        ttl_nanos = _ttl_nanos("SessionStore.create", ttl)
        if ttl_nanos.is_err():
            return ttl_nanos

        result = await self._submit(Command(
            CommandKind.CREATE, sid=key, ttl_nanos=ttl_nanos.unwrap(),
        ))
        if result.is_err():
            return result
        session = result.unwrap().session
        if not session.active:
            return Err(SessionError.collision(key))
        return Ok(session)

    async def restore(
        self,
        sid: SessionKey,
        ttl: Optional[float] = None,
    ) -> Result[Session, MemSessionError]:
        """
        Fetch the session for sid without refreshing its idle timer.

        Args:
            ttl: If positive, replaces the session's TTL in the table

        Returns:
            Ok[Session]: snapshot of the session
            Err[SessionError]: malformed_identifier or session_not_found
            Err[ConfigurationError]: ttl is infinite or NaN
        """
        parsed = self._parse("SessionStore.restore", sid)
        if parsed.is_err():
            return parsed
        key = parsed.unwrap()

        ttl_nanos: Optional[int] = None
        if ttl is not None:
            converted = _ttl_nanos("SessionStore.restore", ttl)
            if converted.is_err():
                return converted
            ttl_nanos = converted.unwrap()

        result = await self._submit(Command(
            CommandKind.RESTORE, sid=key, ttl_nanos=ttl_nanos,
        ))
        if result.is_err():
            return result
        session = result.unwrap().session
        if not session.active:
            return Err(SessionError.session_not_found(key))
        return Ok(session)

    async def touch(self, sid: SessionKey) -> Result[Session, MemSessionError]:
        """Refresh the idle timer of sid and return a fresh snapshot."""
        parsed = self._parse("SessionStore.touch", sid)
        if parsed.is_err():
            return parsed
        key = parsed.unwrap()

        result = await self._touch(key)
        if result.is_err():
            return result
        session, _ = result.unwrap()
        if not session.active:
            return Err(SessionError.session_not_found(key))
        return Ok(session)

    async def destroy(self, sid: SessionKey) -> Result[None, MemSessionError]:
        """
        Remove the session for sid.

        Idempotent: an absent id is not an error.
        """
        parsed = self._parse("SessionStore.destroy", sid)
        if parsed.is_err():
            return parsed

        result = await self._submit(Command(CommandKind.DESTROY, sid=parsed.unwrap()))
        return result.map(lambda _: None)

    async def sweep(self) -> Result[int, MemSessionError]:
        """Run an expiry sweep now; returns the number evicted."""
        result = await self._submit(Command(CommandKind.SWEEP))
        return result.map(lambda reply: reply.value)

    async def _touch(
        self,
        sid: UUID,
        mutation: Optional[Mutation] = None,
    ) -> Result[tuple[Session, Any], MemSessionError]:
        """Touch routed from Session value operations."""
        result = await self._submit(Command(
            CommandKind.TOUCH, sid=sid, mutation=mutation,
        ))
        return result.map(lambda reply: (reply.session, reply.value))

    async def _submit(self, command: Command) -> Result[Any, InternalError]:
        self._ensure_started()
        return await self._actor.submit(command)

    @staticmethod
    def _parse(operation: str, sid: Any) -> Result[UUID, SessionError]:
        if isinstance(sid, str):
            parsed = SessionId.parse(sid)
            if parsed.is_err():
                return Err(SessionError.malformed_identifier(sid, operation))
            return parsed
        if not SessionId.is_valid(sid):
            return Err(SessionError.malformed_identifier(sid, operation))
        return Ok(sid)

    # -------------------------------------------------------------------------
    # Configuration
    # -------------------------------------------------------------------------
    def set_sweep_period(self, seconds: float) -> float:
        """
        Change the interval between expiry sweeps.

        Takes effect from the next scheduled tick; the default TTL of
        sessions created afterwards follows the new period.

        Returns:
            The previous period in seconds
        """
        _check_period(seconds)
        previous = self._sweep_period_s
        self._sweep_period_s = float(seconds)
        _log.debug("Sweep period changed", previous=previous, current=seconds)
        return previous

    @property
    def sweep_period(self) -> float:
        return self._sweep_period_s

    @property
    def default_ttl(self) -> float:
        """Seconds given to sessions created without a positive TTL."""
        return self._sweep_period_s / self._config.ttl_divisor

    def _default_ttl_nanos(self) -> int:
        return seconds_to_nanos(self.default_ttl)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    @property
    def stats(self) -> StoreStats:
        return self._table.stats

    @property
    def size(self) -> int:
        """Number of live sessions."""
        return len(self._table)

    @property
    def running(self) -> bool:
        return self._actor.running

    @property
    def sweeper(self) -> ExpirySweeper:
        return self._sweeper

    def check_invariants(self) -> Result[None, InternalError]:
        """
        Verify table bookkeeping.

        Synchronous, so it cannot interleave with an actor step on the
        same event loop.
        """
        return self._table.check_invariants()


def _check_period(seconds: float) -> None:
    if not math.isfinite(seconds) or seconds <= 0:
        raise ConfigurationError.invalid(
            "sweep_period_s", seconds, "must be a finite number > 0",
        )


def _ttl_nanos(operation: str, ttl: float) -> Result[int, ConfigurationError]:
    """Convert a TTL in seconds; infinities and NaN are refused."""
    if not math.isfinite(ttl):
        return Err(ConfigurationError.invalid(
            "ttl", ttl, f"{operation}: must be a finite number of seconds",
        ))
    return Ok(seconds_to_nanos(ttl))
