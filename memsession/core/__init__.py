"""
Core module: Type definitions, error hierarchy, and configuration.

This module provides the foundational abstractions for the store:
- Result/Either monads for zero-exception control flow
- Error hierarchy with pattern matching support
- Configuration management with validation
"""

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
from memsession.core.config import MemSessionConfig, StoreConfig, ObservabilityConfig

__all__ = [
    "Result",
    "Ok",
    "Err",
    "SessionId",
    "Timestamp",
    "ErrorCode",
    "MemSessionError",
    "SessionError",
    "ConfigurationError",
    "InternalError",
    "MemSessionConfig",
    "StoreConfig",
    "ObservabilityConfig",
]
