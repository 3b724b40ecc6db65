"""
Core Type Definitions for the In-Process Session Store

Implements Result/Either monads for zero-exception control flow,
the session identifier type and a nanosecond timestamp.

Design Principles:
- Never use null for absence (use Optional or Result)
- Enforce exhaustive pattern matching for all variants
- Identifiers are validated once, at the boundary

Complexity: O(1) for all type operations
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Generic,
    Literal,
    TypeVar,
    Union,
)
from uuid import RFC_4122, UUID, uuid4

# =============================================================================
# TYPE VARIABLES FOR GENERIC CONTAINERS
# =============================================================================
T = TypeVar("T")  # Success type
E = TypeVar("E")  # Error type
U = TypeVar("U")  # Transform result type


# =============================================================================
# RESULT MONAD: ZERO-EXCEPTION CONTROL FLOW
# =============================================================================
@dataclass(frozen=True, slots=True)
class Ok(Generic[T]):
    """
    Success variant of Result monad.

    Immutable, hashable container for successful computation results.
    """

    value: T

    def is_ok(self) -> Literal[True]:
        return True

    def is_err(self) -> Literal[False]:
        return False

    def unwrap(self) -> T:
        """
        Extract value. Safe to call after is_ok() check.

        Returns:
            T: The wrapped success value
        """
        return self.value

    def unwrap_or(self, default: T) -> T:
        """Return value, ignoring default."""
        return self.value

    def map(self, fn: Callable[[T], U]) -> Ok[U]:
        """Apply transformation to success value."""
        return Ok(fn(self.value))

    def flat_map(self, fn: Callable[[T], Result[U, E]]) -> Result[U, E]:
        """Monadic bind for chaining fallible operations."""
        return fn(self.value)

    def __repr__(self) -> str:
        return f"Ok({self.value!r})"


@dataclass(frozen=True, slots=True)
class Err(Generic[E]):
    """
    Failure variant of Result monad.

    Immutable container for error information.
    """

    error: E

    def is_ok(self) -> Literal[False]:
        return False

    def is_err(self) -> Literal[True]:
        return True

    def unwrap(self) -> Any:
        """
        Attempting to unwrap an error is a programming error.

        Raises:
            RuntimeError: Always, with error context
        """
        raise RuntimeError(f"Called unwrap() on Err: {self.error}")

    def unwrap_or(self, default: T) -> T:
        """Return default value on error."""
        return default

    def map(self, fn: Callable[[Any], U]) -> Err[E]:
        """No-op on error variant - propagates error unchanged."""
        return self

    def flat_map(self, fn: Callable[[Any], Result[U, E]]) -> Err[E]:
        """Propagate error through monadic chain."""
        return self

    def __repr__(self) -> str:
        return f"Err({self.error!r})"


# Union type for pattern matching
Result = Union[Ok[T], Err[E]]


# =============================================================================
# SESSION IDENTIFIER
# =============================================================================
# The all-zero id carried by the inactive session.
NIL: UUID = UUID(int=0)


class SessionId:
    """
    Helpers for 128-bit session identifiers.

    Session ids are plain ``uuid.UUID`` values so callers can use the ids
    they already hold; this namespace only generates and validates them.
    A valid id has the RFC 4122 variant and is not the nil UUID.
    """

    __slots__ = ()

    @staticmethod
    def generate() -> UUID:
        """Generate a new random (version 4) session id."""
        return uuid4()

    @staticmethod
    def is_valid(sid: Any) -> bool:
        if not isinstance(sid, UUID):
            return False
        return sid != NIL and sid.variant == RFC_4122

    @staticmethod
    def parse(s: str) -> Result[UUID, str]:
        """
        Parse a session id from its string representation.

        Returns:
            Ok[UUID]: Valid parsed identifier
            Err[str]: Validation error message
        """
        try:
            sid = UUID(s)
        except (TypeError, ValueError, AttributeError) as e:
            return Err(f"Invalid session id format: {e}")
        if not SessionId.is_valid(sid):
            return Err(f"Session id {sid} is nil or has a foreign variant")
        return Ok(sid)


NANOS_PER_SECOND: int = 1_000_000_000


# =============================================================================
# TIMESTAMP WITH NANOSECOND PRECISION
# =============================================================================
@dataclass(frozen=True, slots=True, order=True)
class Timestamp:
    """
    High-precision timestamp for session bookkeeping.

    Stores nanoseconds since Unix epoch. Supports comparison and
    subtraction (yielding a nanosecond difference).
    """

    nanos: int

    @classmethod
    def now(cls) -> Timestamp:
        """Capture current time with nanosecond precision."""
        return cls(nanos=time.time_ns())

    @classmethod
    def from_seconds(cls, seconds: float) -> Timestamp:
        """Convert floating-point seconds to Timestamp."""
        return cls(nanos=int(seconds * NANOS_PER_SECOND))

    @property
    def seconds(self) -> float:
        """Convert to floating-point seconds."""
        return self.nanos / NANOS_PER_SECOND

    def __sub__(self, other: Timestamp) -> int:
        """Subtract timestamps, returning difference in nanos."""
        return self.nanos - other.nanos

    def __add__(self, nanos: int) -> Timestamp:
        """Add nanoseconds to timestamp."""
        result = self.nanos + nanos
        if result < 0:
            raise OverflowError("Timestamp underflow")
        return Timestamp(nanos=result)

    def __repr__(self) -> str:
        return f"Timestamp({self.nanos}ns)"


def seconds_to_nanos(seconds: float) -> int:
    """Convert a duration in seconds to integer nanoseconds."""
    return int(seconds * NANOS_PER_SECOND)


# Injectable time source; the table takes one so tests can drive time.
Clock = Callable[[], Timestamp]
