"""
Configuration Management for the Session Store

Provides validated configuration with sensible defaults.
Supports environment variable overrides.

Design:
- Immutable after validation
- Fail-fast on invalid configuration
- Type-safe with dataclasses
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass, field

from memsession.core.types import Result, Ok, Err
from memsession.core import constants as C


@dataclass(frozen=True)
class StoreConfig:
    """Session table and expiry sweep configuration."""

    sweep_period_s: float = C.DEFAULT_SWEEP_PERIOD_S
    ttl_divisor: int = C.TTL_DIVISOR
    queue_maxsize: int = C.DEFAULT_QUEUE_MAXSIZE

    @property
    def default_ttl_s(self) -> float:
        """TTL given to sessions created without a positive one."""
        return self.sweep_period_s / self.ttl_divisor


@dataclass(frozen=True)
class ObservabilityConfig:
    """Logging configuration."""

    log_level: str = "INFO"
    log_json: bool = True


@dataclass(frozen=True)
class MemSessionConfig:
    """Root configuration for the session store."""

    store: StoreConfig = field(default_factory=StoreConfig)
    observability: ObservabilityConfig = field(default_factory=ObservabilityConfig)

    @classmethod
    def from_env(cls) -> Result[MemSessionConfig, str]:
        """
        Load configuration from environment variables.

        Environment variables are prefixed with MEMSESSION_.
        Example: MEMSESSION_SWEEP_PERIOD_S=600, MEMSESSION_LOG_JSON=false
        """
        p = C.ENV_PREFIX
        try:
            store = StoreConfig(
                sweep_period_s=float(
                    os.getenv(f"{p}SWEEP_PERIOD_S", str(C.DEFAULT_SWEEP_PERIOD_S))
                ),
                ttl_divisor=int(os.getenv(f"{p}TTL_DIVISOR", str(C.TTL_DIVISOR))),
                queue_maxsize=int(
                    os.getenv(f"{p}QUEUE_MAXSIZE", str(C.DEFAULT_QUEUE_MAXSIZE))
                ),
            )

            observability = ObservabilityConfig(
                log_level=os.getenv(f"{p}LOG_LEVEL", "INFO").upper(),
                log_json=_parse_bool(os.getenv(f"{p}LOG_JSON", "true")),
            )

            return Ok(cls(store=store, observability=observability))
        except (ValueError, TypeError) as e:
            return Err(f"Configuration error: {e}")

    def validate(self) -> Result[None, str]:
        """Validate configuration invariants."""
        period = self.store.sweep_period_s
        if not math.isfinite(period) or period <= 0:
            return Err("sweep_period_s must be a finite number > 0")
        if self.store.ttl_divisor < 1:
            return Err("ttl_divisor must be >= 1")
        if self.store.queue_maxsize < 0:
            return Err("queue_maxsize must be >= 0")
        if self.observability.log_level not in {
            "DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL",
        }:
            return Err(f"Unknown log level {self.observability.log_level!r}")
        return Ok(None)


def _parse_bool(value: str) -> bool:
    v = value.strip().lower()
    if v in {"1", "true", "yes", "on"}:
        return True
    if v in {"0", "false", "no", "off"}:
        return False
    raise ValueError(f"not a boolean: {value!r}")
