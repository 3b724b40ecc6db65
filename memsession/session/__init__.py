"""
Session Module: Single-Writer In-Memory Session Store

Provides:
- Session: Immutable session snapshot with set/get/delete round trips
- SessionTable: Session map plus compacted index array
- SessionActor: Serialized command loop owning the table
- ExpirySweeper: Periodic eviction of idle sessions
- SessionStore: Public facade

Architecture:
    caller -> SessionStore -> command queue -> SessionActor -> SessionTable
                                   ^
                    ExpirySweeper -+ (one SWEEP per tick)
"""

from memsession.session.model import (
    MISSING,
    Session,
    ValueStore,
)
from memsession.session.table import (
    SessionTable,
    StoreStats,
)
from memsession.session.actor import (
    Command,
    CommandKind,
    Reply,
    SessionActor,
)
from memsession.session.sweeper import ExpirySweeper
from memsession.session.store import SessionStore

__all__ = [
    # Model
    "MISSING",
    "Session",
    "ValueStore",
    # Table
    "SessionTable",
    "StoreStats",
    # Actor
    "Command",
    "CommandKind",
    "Reply",
    "SessionActor",
    # Sweeper
    "ExpirySweeper",
    # Facade
    "SessionStore",
]
