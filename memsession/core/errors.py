"""
Error Hierarchy for the Session Store

Design Principles:
- Caller misuse and lost sessions are values (returned inside Err)
- Internal consistency violations are raised and halt the actor
- Carry full error context for debugging

Each error type includes:
- Unique error code for programmatic handling
- Human-readable message for logging
- Optional cause chain for root cause analysis
- Timestamp for correlation with logs

Usage:
    result = await store.restore(sid)
    match result:
        case Ok(session):
            use(session)
        case Err(SessionError(code=ErrorCode.SESSION_NOT_FOUND)):
            redirect_to_login()
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from memsession.core.types import Timestamp


# =============================================================================
# ERROR CODE ENUMERATION
# =============================================================================
class ErrorCode(Enum):
    """
    Unique error codes for programmatic error handling.

    Codes are grouped by subsystem:
    - 1xxx: Session errors (caller facing)
    - 2xxx: Configuration errors
    - 9xxx: Internal errors
    """

    # Session errors (1xxx)
    SESSION_MALFORMED_ID = 1001
    SESSION_COLLISION = 1002
    SESSION_NOT_FOUND = 1003
    SESSION_KEY_NOT_FOUND = 1004
    SESSION_EXPIRED = 1005
    SESSION_UNBOUND = 1006

    # Configuration errors (2xxx)
    CONFIG_INVALID = 2001

    # Internal errors (9xxx)
    INTERNAL_UNKNOWN_COMMAND = 9001
    INTERNAL_ACTOR_HALTED = 9002
    INTERNAL_INVARIANT_VIOLATED = 9003


# =============================================================================
# BASE ERROR CLASS
# =============================================================================
@dataclass
class MemSessionError(Exception):
    """
    Base class for all session store errors.

    Provides common infrastructure for error handling:
    - Unique error ID for log correlation
    - Error code for programmatic handling
    - Timestamp for correlation
    - Cause chain for root cause analysis
    """

    code: ErrorCode
    message: str
    error_id: str = field(default_factory=lambda: str(uuid4()))
    timestamp: Timestamp = field(default_factory=Timestamp.now)
    cause: Optional[Exception] = None
    context: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        # Initialize Exception base class with message
        super().__init__(self.message)

    def with_context(self, **kwargs: Any) -> MemSessionError:
        """
        Add context to error (returns new instance of the same class).
        """
        return type(self)(
            code=self.code,
            message=self.message,
            error_id=self.error_id,
            timestamp=self.timestamp,
            cause=self.cause,
            context={**self.context, **kwargs},
        )

    def to_dict(self) -> dict[str, Any]:
        """Serialize error to dictionary for logging."""
        return {
            "error_id": self.error_id,
            "code": self.code.name,
            "code_value": self.code.value,
            "message": self.message,
            "timestamp_nanos": self.timestamp.nanos,
            "context": self.context,
        }

    def __str__(self) -> str:
        return f"[{self.code.name}] {self.message} (id={self.error_id[:8]})"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"code={self.code.name}, "
            f"message={self.message!r}, "
            f"error_id={self.error_id!r})"
        )


# =============================================================================
# SESSION ERRORS (CALLER FACING)
# =============================================================================
@dataclass
class SessionError(MemSessionError):
    """
    Errors returned to callers of the store and of session values.

    None of these are retried by the store; retry policy belongs
    to the caller.
    """

    @classmethod
    def malformed_identifier(cls, sid: Any, operation: str) -> SessionError:
        """Caller supplied an invalid or nil session id."""
        return cls(
            code=ErrorCode.SESSION_MALFORMED_ID,
            message=f"{operation}: poorly formed session id {sid!r}",
            context={"sid": str(sid), "operation": operation},
        )

    @classmethod
    def collision(cls, sid: UUID) -> SessionError:
        """Create was called with an id that is already active."""
        return cls(
            code=ErrorCode.SESSION_COLLISION,
            message=f"session {sid} already in use",
            context={"sid": str(sid)},
        )

    @classmethod
    def session_not_found(cls, sid: UUID) -> SessionError:
        """No session exists for the id."""
        return cls(
            code=ErrorCode.SESSION_NOT_FOUND,
            message=f"session {sid} does not exist",
            context={"sid": str(sid)},
        )

    @classmethod
    def key_not_found(cls, sid: UUID, key: Any) -> SessionError:
        """The session is live but holds no value for the key."""
        return cls(
            code=ErrorCode.SESSION_KEY_NOT_FOUND,
            message=f"data not found in session {sid} for key {key!r}",
            context={"sid": str(sid), "key": repr(key)[:100]},
        )

    @classmethod
    def expired(cls, sid: UUID, operation: str) -> SessionError:
        """The session existed but was destroyed or timed out."""
        return cls(
            code=ErrorCode.SESSION_EXPIRED,
            message=f"{operation}: session {sid} timed out or was destroyed",
            context={"sid": str(sid), "operation": operation},
        )

    @classmethod
    def unbound(cls, operation: str) -> SessionError:
        """The session value has no backing store or is inactive."""
        return cls(
            code=ErrorCode.SESSION_UNBOUND,
            message=f"{operation}: session is inactive or not bound to a store",
            context={"operation": operation},
        )

    def is_not_found(self) -> bool:
        """True for every failure meaning "nothing there any more"."""
        return self.code in {
            ErrorCode.SESSION_NOT_FOUND,
            ErrorCode.SESSION_KEY_NOT_FOUND,
            ErrorCode.SESSION_EXPIRED,
        }


# =============================================================================
# CONFIGURATION ERRORS
# =============================================================================
@dataclass
class ConfigurationError(MemSessionError):
    """Invalid configuration values."""

    @classmethod
    def invalid(cls, field_name: str, value: Any, reason: str) -> ConfigurationError:
        return cls(
            code=ErrorCode.CONFIG_INVALID,
            message=f"Invalid configuration for '{field_name}': {reason}",
            context={"field": field_name, "value": str(value)[:100], "reason": reason},
        )


# =============================================================================
# INTERNAL ERRORS (FATAL)
# =============================================================================
@dataclass
class InternalError(MemSessionError):
    """
    Internal consistency violations.

    These indicate a programming error upstream rather than caller
    misuse. The actor raises them and stops; they are never swallowed.
    """

    @classmethod
    def unknown_command(cls, kind: Any) -> InternalError:
        """The actor received a command kind it does not know."""
        return cls(
            code=ErrorCode.INTERNAL_UNKNOWN_COMMAND,
            message=f"default fall through: unknown command {kind!r}",
            context={"kind": repr(kind)},
        )

    @classmethod
    def actor_halted(cls, reason: str) -> InternalError:
        """The actor is no longer accepting commands."""
        return cls(
            code=ErrorCode.INTERNAL_ACTOR_HALTED,
            message=f"session actor is not running: {reason}",
            context={"reason": reason},
        )

    @classmethod
    def invariant_violated(cls, description: str, **context: Any) -> InternalError:
        """Session table bookkeeping is inconsistent."""
        return cls(
            code=ErrorCode.INTERNAL_INVARIANT_VIOLATED,
            message=f"Session table invariant violated: {description}",
            context=context,
        )
