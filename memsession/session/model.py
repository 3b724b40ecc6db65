"""
Session Model: Immutable Session Snapshots

A Session is the client-facing unit of state: an id, a value store,
timestamps, a TTL and a weak back reference to the owning store.

Data Model:
    id        UUID       128-bit session identifier
    data      Mapping    key -> value bag (read-only in snapshots)
    created   Timestamp  creation time
    modified  Timestamp  last successful access (drives expiry)
    index     int        position of the id in the table's ordered array
    ttl_nanos int        maximum idle time before the sweep evicts it
    active    bool       False only for the inactive zero value

Design:
    Sessions are frozen. The authoritative copy lives in the session
    table and is only replaced (never mutated in place) on the actor.
    Callers receive snapshots whose data is a read-only shallow copy:
    keys cannot be added, replaced or removed through a snapshot, and
    set/get/delete route every such change back through the actor.
    Values themselves are stored by reference, so a mutable value
    (a list, a dict, an object) obtained from a snapshot or from get()
    is the same object the table holds. Changing it in place changes
    what later readers see without passing through the actor; store a
    new value with set() when the change must be serialized.
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, field, replace
from types import MappingProxyType
from typing import TYPE_CHECKING, Any, Callable, Mapping, Optional
from uuid import UUID

from memsession.core.errors import MemSessionError, SessionError
from memsession.core.types import NANOS_PER_SECOND, NIL, Err, Ok, Result, Timestamp

if TYPE_CHECKING:
    from memsession.session.store import SessionStore


# Mapping owned by exactly one authoritative Session in the table.
ValueStore = dict[Any, Any]

# Callable run on the actor against the authoritative value store.
Mutation = Callable[[ValueStore], Any]

_EMPTY: Mapping[Any, Any] = MappingProxyType({})


class _Missing:
    """Sentinel for an absent key (None is a legal stored value)."""

    __slots__ = ()

    def __repr__(self) -> str:
        return "<missing>"


MISSING = _Missing()


@dataclass(frozen=True, slots=True)
class Session:
    """
    Session value object.

    Usage:
        session = (await store.create(sid, ttl=300)).unwrap()
        await session.set("user", "ada")
        user = (await session.get("user")).unwrap()
    """

    id: UUID
    data: Mapping[Any, Any] = field(
        default_factory=lambda: _EMPTY, compare=False, repr=False,
    )
    created: Timestamp = field(default_factory=lambda: Timestamp(nanos=0))
    modified: Timestamp = field(default_factory=lambda: Timestamp(nanos=0))
    index: int = 0
    ttl_nanos: int = 0
    active: bool = False
    store_ref: Optional[weakref.ReferenceType[SessionStore]] = field(
        default=None, compare=False, repr=False,
    )

    @classmethod
    def inactive(cls) -> Session:
        """The zero value: no id, no store, not active."""
        return cls(id=NIL)

    # -------------------------------------------------------------------------
    # Pure accessors
    # -------------------------------------------------------------------------
    def valid(self) -> bool:
        """
        Report this snapshot's own active flag.

        Not re-validated against the table; the session may have
        expired since the snapshot was taken.
        """
        return self.active

    @property
    def ttl_seconds(self) -> float:
        return self.ttl_nanos / NANOS_PER_SECOND

    def idle_nanos(self, now: Timestamp) -> int:
        return now - self.modified

    def is_expired_at(self, now: Timestamp) -> bool:
        """True when idle time strictly exceeds the TTL."""
        return self.idle_nanos(now) > self.ttl_nanos

    @property
    def store(self) -> Optional[SessionStore]:
        """Owning store, or None if unbound or the store is gone."""
        if self.store_ref is None:
            return None
        return self.store_ref()

    def snapshot(self) -> Session:
        """
        Copy for handing to callers; data becomes a read-only shallow
        copy (values are shared, not copied).
        """
        return replace(self, data=MappingProxyType(dict(self.data)))

    def header(self) -> Session:
        """Copy without the value store, for replies that only need state."""
        return replace(self, data=_EMPTY)

    # -------------------------------------------------------------------------
    # Value store operations (round trip through the actor)
    # -------------------------------------------------------------------------
    async def set(self, key: Any, value: Any) -> Result[None, MemSessionError]:
        """Store value under key."""

        def _set(data: ValueStore) -> None:
            data[key] = value

        result = await self._access("Session.set", _set)
        return result.map(lambda _: None)

    async def get(self, key: Any) -> Result[Any, MemSessionError]:
        """
        Retrieve the value stored under key.

        Returns:
            Ok[Any]: the stored value (which may itself be None)
            Err[SessionError]: unbound, expired, or key_not_found
        """
        result = await self._access("Session.get", lambda data: data.get(key, MISSING))
        if result.is_err():
            return result
        value = result.unwrap()
        if value is MISSING:
            return Err(SessionError.key_not_found(self.id, key))
        return Ok(value)

    async def delete(self, key: Any) -> Result[None, MemSessionError]:
        """Remove key; deleting an absent key is not an error."""
        result = await self._access("Session.delete", lambda data: data.pop(key, None))
        return result.map(lambda _: None)

    async def _access(
        self,
        operation: str,
        mutation: Mutation,
    ) -> Result[Any, MemSessionError]:
        store = self.store
        if store is None or not self.active:
            return Err(SessionError.unbound(operation))

        # Touch first: refreshes liveness and runs the mutation against
        # the authoritative entry in the same actor step.
        result = await store._touch(self.id, mutation)
        if result.is_err():
            return result

        fresh, value = result.unwrap()
        if not fresh.active:
            return Err(SessionError.expired(self.id, operation))
        return Ok(value)
