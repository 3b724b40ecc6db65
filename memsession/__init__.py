"""
memsession: In-Process Session Store

Short-lived, per-user key/value bags addressed by a 128-bit session id,
held safely across concurrent callers without an external datastore.

- Single writer: one actor task owns the session table
- Compacted index array for O(n - p) removal without table scans
- Periodic expiry sweep evicting sessions idle beyond their TTL

License: MIT
"""

__version__ = "1.0.0"

# =============================================================================
# PUBLIC API EXPORTS
# =============================================================================
from memsession.core.types import (
    Result,
    Ok,
    Err,
    SessionId,
    Timestamp,
)
from memsession.core.errors import (
    ErrorCode,
    MemSessionError,
    SessionError,
    ConfigurationError,
    InternalError,
)
from memsession.core.config import MemSessionConfig, StoreConfig

from memsession.session import (
    Session,
    SessionStore,
    StoreStats,
)
from memsession.manager import (
    MemoryType,
    SessionManager,
    SessionProvider,
    sweep_period,
)

__all__ = [
    "__version__",
    # Result monad
    "Result",
    "Ok",
    "Err",
    # Identity and time
    "SessionId",
    "Timestamp",
    # Errors
    "ErrorCode",
    "MemSessionError",
    "SessionError",
    "ConfigurationError",
    "InternalError",
    # Config
    "MemSessionConfig",
    "StoreConfig",
    # Store
    "Session",
    "SessionStore",
    "StoreStats",
    # Manager
    "MemoryType",
    "SessionManager",
    "SessionProvider",
    "sweep_period",
]
