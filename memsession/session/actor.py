"""
Session Actor: Single-Writer Command Loop

All session table mutations run on one asyncio task that drains a FIFO
command queue. Each command carries a one-shot reply future; the actor
resolves exactly one reply per command before taking the next, so
concurrent callers are totally ordered by their arrival at the queue
and no lock is needed around the table.

Commands:
    CREATE   sid, ttl        -> new session or inactive on collision
    RESTORE  sid, ttl|None   -> session or inactive
    DESTROY  sid             -> inactive (idempotent)
    TOUCH    sid, mutation   -> refreshed session and mutation result
    SWEEP    -               -> inactive, value = sessions evicted
    STOP     -               -> inactive; the loop exits afterwards

An unknown command kind is an internal consistency violation: the
actor fails that command, halts, and raises. Commands still queued or
submitted later are answered with InternalError.actor_halted.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from enum import Enum, auto
from typing import Any, Callable, Coroutine, Optional, TypeVar
from uuid import UUID

from memsession.core.errors import ErrorCode, InternalError
from memsession.core.types import Err, Ok, Result
from memsession.observability.logging import StructuredLogger
from memsession.session.model import Mutation, Session
from memsession.session.table import SessionTable

_log = StructuredLogger(__name__)

T = TypeVar("T")


# =============================================================================
# COMMANDS
# =============================================================================
class CommandKind(Enum):
    """Operations the actor knows how to run."""
    CREATE = auto()
    RESTORE = auto()
    DESTROY = auto()
    TOUCH = auto()
    SWEEP = auto()
    STOP = auto()


@dataclass(frozen=True, slots=True)
class Reply:
    """Result deposited by the actor for one command."""
    session: Session
    value: Any = None


@dataclass(slots=True)
class Command:
    """
    A single request to the actor.

    The reply future is created by SessionActor.submit; callers only
    fill in the operands.
    """
    kind: CommandKind
    sid: Optional[UUID] = None
    ttl_nanos: Optional[int] = None
    mutation: Optional[Mutation] = None
    reply: Optional[asyncio.Future[Reply]] = field(default=None, repr=False)


# =============================================================================
# ACTOR
# =============================================================================
class SessionActor:
    """
    Serialized owner of a SessionTable.

    Usage:
        actor = SessionActor(table)
        actor.start()

        result = await actor.submit(Command(CommandKind.CREATE, sid=sid, ttl_nanos=0))
        if result.is_ok():
            session = result.unwrap().session

        await actor.stop()
    """

    __slots__ = (
        "_table", "_queue", "_task", "_loop", "_halted", "_handlers", "_processed",
    )

    def __init__(self, table: SessionTable, maxsize: int = 0) -> None:
        self._table = table
        self._queue: asyncio.Queue[Command] = asyncio.Queue(maxsize=maxsize)
        self._task: Optional[asyncio.Task[None]] = None
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._halted: Optional[str] = None
        self._processed = 0
        self._handlers: dict[CommandKind, Callable[[Command], Reply]] = {
            CommandKind.CREATE: self._create,
            CommandKind.RESTORE: self._restore,
            CommandKind.DESTROY: self._destroy,
            CommandKind.TOUCH: self._touch,
            CommandKind.SWEEP: self._sweep,
            CommandKind.STOP: self._stop,
        }

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------
    def start(self) -> None:
        """Start the command loop on the running event loop."""
        if self._halted is not None:
            raise InternalError.actor_halted(self._halted)
        if self._task is not None:
            return
        self._loop = asyncio.get_running_loop()
        self._task = self._loop.create_task(self._run(), name="memsession-actor")
        _log.debug("Session actor started")

    async def stop(self) -> None:
        """
        Stop the loop after every command queued so far is answered.
        """
        if self.foreign_caller():
            try:
                await self.on_actor_loop(self.stop())
            except InternalError:
                # The actor task went down with its event loop.
                self._halted = self._halted or "event loop not running"
            return
        if self._task is None or self._task.done():
            if self._halted is None:
                self._halted = "stopped"
            if self._task is not None and not self._task.cancelled():
                # A fatal error was already raised to its submitter.
                self._task.exception()
            return
        await self.submit(Command(CommandKind.STOP))
        try:
            await self._task
        except InternalError:
            # Already raised to the caller whose command broke the loop.
            pass

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def halted(self) -> Optional[str]:
        """Reason the actor stopped accepting commands, or None."""
        return self._halted

    @property
    def processed(self) -> int:
        """Commands answered so far."""
        return self._processed

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def loop(self) -> Optional[asyncio.AbstractEventLoop]:
        """Event loop the command loop runs on, once started."""
        return self._loop

    # -------------------------------------------------------------------------
    # Request / response
    # -------------------------------------------------------------------------
    async def submit(self, command: Command) -> Result[Reply, InternalError]:
        """
        Enqueue command and wait for its reply.

        Returns Err(actor_halted) if the actor is stopped or halts before
        answering. The fatal unknown-command error propagates as raised.
        """
        if self._halted is not None:
            return Err(InternalError.actor_halted(self._halted))
        if self._task is None:
            return Err(InternalError.actor_halted("not started"))

        if self.foreign_caller():
            try:
                return await self.on_actor_loop(self.submit(command))
            except InternalError as e:
                if e.code is ErrorCode.INTERNAL_ACTOR_HALTED:
                    return Err(e)
                raise

        command.reply = asyncio.get_running_loop().create_future()
        await self._queue.put(command)
        if self._halted is not None:
            # Loop ended while a bounded put was waiting for room.
            self._drain()
        try:
            return Ok(await command.reply)
        except InternalError as e:
            if e.code is ErrorCode.INTERNAL_ACTOR_HALTED:
                return Err(e)
            raise

    def foreign_caller(self) -> bool:
        """True when awaited from an event loop other than the actor's."""
        return self._loop is not None and asyncio.get_running_loop() is not self._loop

    async def on_actor_loop(self, coro: Coroutine[Any, Any, T]) -> T:
        """
        Run coro on the actor's loop, awaiting the outcome from the
        caller's loop. Queue and reply futures are only touched by the
        loop that owns them.
        """
        loop = self._loop
        if loop is None or loop.is_closed() or not loop.is_running():
            coro.close()
            raise InternalError.actor_halted("event loop not running")
        try:
            future = asyncio.run_coroutine_threadsafe(coro, loop)
        except RuntimeError:
            # Closed between the check and the hand-off.
            coro.close()
            raise InternalError.actor_halted("event loop not running")
        return await asyncio.wrap_future(future)

    # -------------------------------------------------------------------------
    # Command loop
    # -------------------------------------------------------------------------
    async def _run(self) -> None:
        # Records from the table and handlers carry the component field.
        with _log.context(component="session-actor"):
            try:
                while True:
                    command = await self._queue.get()
                    try:
                        self._dispatch(command)
                    finally:
                        self._queue.task_done()
                    if command.kind is CommandKind.STOP:
                        self._halted = "stopped"
                        break
            except asyncio.CancelledError:
                self._halted = "cancelled"
                raise
            finally:
                self._drain()
                _log.debug("Session actor stopped", reason=self._halted)

    def _dispatch(self, command: Command) -> None:
        handler = self._handlers.get(command.kind)
        if handler is None:
            error = InternalError.unknown_command(command.kind)
            self._halted = error.message
            _log.critical("Default fall through", kind=repr(command.kind))
            self._resolve_error(command, error)
            raise error

        try:
            reply = handler(command)
        except Exception as e:
            # Raised by caller-supplied mutation code; the table itself
            # is already consistent at this point.
            self._resolve_error(command, e)
        else:
            if command.reply is not None and not command.reply.done():
                command.reply.set_result(reply)
        self._processed += 1

    def _drain(self) -> None:
        """Answer everything left in the queue once the loop is over."""
        reason = self._halted or "stopped"
        while True:
            try:
                command = self._queue.get_nowait()
            except asyncio.QueueEmpty:
                break
            self._resolve_error(command, InternalError.actor_halted(reason))
            self._queue.task_done()

    @staticmethod
    def _resolve_error(command: Command, error: BaseException) -> None:
        if command.reply is not None and not command.reply.done():
            command.reply.set_exception(error)

    # -------------------------------------------------------------------------
    # Handlers (run on the actor only)
    # -------------------------------------------------------------------------
    def _create(self, command: Command) -> Reply:
        return Reply(self._table.create(command.sid, command.ttl_nanos or 0))

    def _restore(self, command: Command) -> Reply:
        return Reply(self._table.restore(command.sid, command.ttl_nanos))

    def _destroy(self, command: Command) -> Reply:
        removed = self._table.destroy(command.sid, caller="destroy")
        return Reply(Session.inactive(), removed)

    def _touch(self, command: Command) -> Reply:
        session, value = self._table.touch(command.sid, command.mutation)
        return Reply(session, value)

    def _sweep(self, command: Command) -> Reply:
        evicted = self._table.sweep()
        if evicted:
            _log.info("Expired sessions evicted", evicted=evicted)
        return Reply(Session.inactive(), evicted)

    def _stop(self, command: Command) -> Reply:
        return Reply(Session.inactive())
