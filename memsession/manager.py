"""
Session Manager: Backend Selection and Options

Thin facade that picks a storage backend and exposes option functions.
Only the in-memory backend exists.

Options follow the "self-restoring option" pattern: applying an option
returns another option that puts the previous value back.

Usage:
    manager = SessionManager(MemoryType.RAM)
    restore = manager.options(sweep_period(60))
    ...
    manager.options(restore)   # back to the previous period
"""

from __future__ import annotations

from enum import Enum, auto
from typing import Any, Callable, Optional, Protocol, Union, runtime_checkable
from uuid import UUID

from memsession.core.config import StoreConfig
from memsession.core.errors import MemSessionError
from memsession.core.types import Result
from memsession.session.model import Session
from memsession.session.store import SessionStore


class MemoryType(Enum):
    """Storage used by the session backend."""
    RAM = auto()


@runtime_checkable
class SessionProvider(Protocol):
    """Operations every session backend supplies."""

    async def create(
        self, sid: Union[UUID, str], ttl: float = 0,
    ) -> Result[Session, MemSessionError]: ...

    async def restore(
        self, sid: Union[UUID, str], ttl: Optional[float] = None,
    ) -> Result[Session, MemSessionError]: ...

    async def destroy(self, sid: Union[UUID, str]) -> Result[None, MemSessionError]: ...

    def set_sweep_period(self, seconds: float) -> float: ...

    async def close(self) -> None: ...


# An option applies itself and returns the option undoing it.
ManagerOption = Callable[["SessionManager"], "ManagerOption"]


def sweep_period(seconds: float) -> ManagerOption:
    """Option setting the interval between expiry sweeps."""

    def apply(manager: SessionManager) -> ManagerOption:
        previous = manager.set_sweep_period(seconds)
        return sweep_period(previous)

    return apply


class SessionManager:
    """
    Session manager delegating to a backend chosen by memory type.

    Usage:
        async with SessionManager() as manager:
            session = (await manager.create(SessionId.generate())).unwrap()
    """

    __slots__ = ("_memory", "_backend")

    def __init__(
        self,
        memory: MemoryType = MemoryType.RAM,
        config: Optional[StoreConfig] = None,
    ) -> None:
        self._memory = memory
        self._backend: SessionProvider = _new_backend(memory, config)

    def options(self, *opts: ManagerOption) -> Optional[ManagerOption]:
        """
        Apply options in order.

        Returns:
            An option restoring the value changed by the last option,
            or None if no option was given
        """
        previous: Optional[ManagerOption] = None
        for opt in opts:
            previous = opt(self)
        return previous

    async def create(
        self, sid: Union[UUID, str], ttl: float = 0,
    ) -> Result[Session, MemSessionError]:
        return await self._backend.create(sid, ttl)

    async def restore(
        self, sid: Union[UUID, str], ttl: Optional[float] = None,
    ) -> Result[Session, MemSessionError]:
        return await self._backend.restore(sid, ttl)

    async def destroy(self, sid: Union[UUID, str]) -> Result[None, MemSessionError]:
        return await self._backend.destroy(sid)

    def set_sweep_period(self, seconds: float) -> float:
        return self._backend.set_sweep_period(seconds)

    async def close(self) -> None:
        await self._backend.close()

    @property
    def memory(self) -> MemoryType:
        return self._memory

    @property
    def backend(self) -> SessionProvider:
        return self._backend

    async def __aenter__(self) -> SessionManager:
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


def _new_backend(memory: MemoryType, config: Optional[StoreConfig]) -> SessionProvider:
    if memory is MemoryType.RAM:
        return SessionStore(config)
    raise ValueError(f"Unsupported memory type: {memory!r}")
