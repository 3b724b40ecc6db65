"""
Session Table: Authoritative Session Map with Compacted Index Array

Holds every live session and the ordered array of their ids:

    sessions: {sid -> Session}     single source of truth
    array:    [sid, sid, ...]      dense, parallel to sessions
    index:    int                  next free position == len(array)

Invariants:
    - every key of sessions appears exactly once in array, at the
      position stored in that session's index field
    - len(array) == len(sessions) == index
    - removing position p decrements the stored index of every session
      after p by exactly one
    - a session is present or entirely absent (no tombstones)

Thread Safety:
    None. The table must only be touched by the session actor, which
    serializes every operation.

Complexity:
    create / restore / touch: O(1)
    destroy: O(n - p) for removal position p
    sweep:   O(n) plus the destroys it performs
"""

from __future__ import annotations

import weakref
from dataclasses import dataclass, replace
from typing import TYPE_CHECKING, Any, Callable, Iterator, Optional
from uuid import UUID

from memsession.core.errors import InternalError
from memsession.core.types import Clock, Err, Ok, Result, Timestamp
from memsession.observability.logging import LogLevel, StructuredLogger
from memsession.session.model import Mutation, Session

if TYPE_CHECKING:
    from memsession.session.store import SessionStore

_log = StructuredLogger(__name__)


# =============================================================================
# TABLE STATISTICS
# =============================================================================
@dataclass
class StoreStats:
    """Session table counters, maintained on the actor."""
    created: int = 0
    collisions: int = 0
    restored: int = 0
    touched: int = 0
    destroyed: int = 0
    expired: int = 0
    sweeps: int = 0
    active: int = 0

    @property
    def evicted(self) -> int:
        """Sessions removed either explicitly or by the sweep."""
        return self.destroyed + self.expired


# =============================================================================
# SESSION TABLE
# =============================================================================
class SessionTable:
    """
    Dense session table with O(1) position lookup for removal.

    Operations return snapshots; the entries kept in ``sessions`` own
    the live value stores and are replaced, never shared with callers.
    """

    __slots__ = (
        "sessions", "array", "index",
        "_clock", "_default_ttl", "_store_ref", "_stats",
    )

    def __init__(
        self,
        default_ttl: Callable[[], int],
        clock: Clock = Timestamp.now,
        store: Optional[SessionStore] = None,
    ) -> None:
        """
        Args:
            default_ttl: Returns the TTL in nanoseconds given to sessions
                created with a non-positive one. Called per create so a
                changed sweep period is honoured.
            clock: Time source
            store: Owning store, recorded in sessions as a weak reference
        """
        self.sessions: dict[UUID, Session] = {}
        self.array: list[UUID] = []
        self.index: int = 0
        self._clock = clock
        self._default_ttl = default_ttl
        self._store_ref = weakref.ref(store) if store is not None else None
        self._stats = StoreStats()

    # -------------------------------------------------------------------------
    # Commands
    # -------------------------------------------------------------------------
    def create(self, sid: UUID, ttl_nanos: int) -> Session:
        """
        Insert a new session at the end of the array.

        Returns the inactive session if sid is already in use.
        """
        if sid in self.sessions:
            self._stats.collisions += 1
            _log.debug("Session already in use", sid=str(sid))
            return Session.inactive()

        now = self._clock()
        if ttl_nanos <= 0:
            ttl_nanos = self._default_ttl()

        session = Session(
            id=sid,
            data={},
            created=now,
            modified=now,
            index=self.index,
            ttl_nanos=ttl_nanos,
            active=True,
            store_ref=self._store_ref,
        )
        self.sessions[sid] = session
        self.array.append(sid)
        self.index += 1

        self._stats.created += 1
        self._stats.active = len(self.sessions)
        _log.debug("Session created", sid=str(sid), index=session.index)
        return session.snapshot()

    def restore(self, sid: UUID, ttl_nanos: Optional[int] = None) -> Session:
        """
        Look up a session without refreshing its modified time.

        A positive ttl_nanos replaces the stored TTL, so the new
        expiry is honoured by the next sweep.
        """
        session = self.sessions.get(sid)
        if session is None:
            _log.debug("Session not found", sid=str(sid))
            return Session.inactive()

        if ttl_nanos is not None and ttl_nanos > 0 and ttl_nanos != session.ttl_nanos:
            session = replace(session, ttl_nanos=ttl_nanos)
            self.sessions[sid] = session

        self._stats.restored += 1
        _log.debug("Session restored", sid=str(sid))
        return session.snapshot()

    def touch(
        self,
        sid: UUID,
        mutation: Optional[Mutation] = None,
    ) -> tuple[Session, Any]:
        """
        Refresh the modified time, then apply mutation to the live store.

        Returns:
            (snapshot, None) without a mutation; (header, mutation result)
            with one, the header carrying no data; (inactive, None) if sid
            is absent
        """
        session = self.sessions.get(sid)
        if session is None:
            _log.debug("No session for this key", sid=str(sid))
            return Session.inactive(), None

        session = replace(session, modified=self._clock())
        self.sessions[sid] = session
        self._stats.touched += 1

        if mutation is None:
            return session.snapshot(), None
        # Value operations read only the active flag of the reply.
        return session.header(), mutation(session.data)

    def destroy(self, sid: UUID, caller: str = "destroy") -> bool:
        """
        Remove sid and compact the array.

        Idempotent: destroying an absent id is a logged no-op.

        Returns:
            True if a session was removed, False if none existed
        """
        removed = self._remove(sid, caller)
        if removed:
            self._stats.destroyed += 1
        return removed

    def _remove(self, sid: UUID, caller: str) -> bool:
        session = self.sessions.get(sid)
        if session is None:
            _log.debug("No session to destroy", sid=str(sid), caller=caller)
            return False

        pos = session.index
        del self.array[pos]
        self.index -= 1

        # Every id that slid down one slot gets its stored position fixed.
        for moved in self.array[pos:]:
            entry = self.sessions[moved]
            self.sessions[moved] = replace(entry, index=entry.index - 1)

        del self.sessions[sid]
        self._stats.active = len(self.sessions)
        _log.debug("Session destroyed", sid=str(sid), caller=caller)
        return True

    def sweep(self) -> int:
        """
        Destroy every session idle for longer than its TTL.

        Iterates a snapshot of the keys taken at sweep start; destroys
        only shift positions of other entries, never their expiry.

        Returns:
            Number of sessions evicted
        """
        now = self._clock()
        evicted = 0
        if _log.is_enabled_for(LogLevel.DEBUG):
            _log.debug("Clearing session store", sessions=len(self.sessions))

        for sid in list(self.sessions):
            session = self.sessions.get(sid)
            if session is not None and session.is_expired_at(now):
                if self._remove(sid, caller="sweep"):
                    evicted += 1

        self._stats.sweeps += 1
        self._stats.expired += evicted
        return evicted

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------
    def check_invariants(self) -> Result[None, InternalError]:
        """Verify array/index bookkeeping against the session map."""
        if not (len(self.array) == len(self.sessions) == self.index):
            return Err(InternalError.invariant_violated(
                "size mismatch",
                array=len(self.array),
                sessions=len(self.sessions),
                index=self.index,
            ))
        for pos, sid in enumerate(self.array):
            session = self.sessions.get(sid)
            if session is None:
                return Err(InternalError.invariant_violated(
                    "array holds an id with no session", sid=str(sid), position=pos,
                ))
            if session.index != pos:
                return Err(InternalError.invariant_violated(
                    "stored index differs from array position",
                    sid=str(sid), position=pos, stored=session.index,
                ))
        return Ok(None)

    @property
    def stats(self) -> StoreStats:
        return self._stats

    def __len__(self) -> int:
        return len(self.sessions)

    def __contains__(self, sid: object) -> bool:
        return sid in self.sessions

    def __iter__(self) -> Iterator[UUID]:
        return iter(self.array)
