"""
System-Wide Constants for the Session Store

All magic numbers and configuration defaults centralized here.
"""

from typing import Final

# =============================================================================
# TIME UNITS
# =============================================================================
SECOND_S: Final[float] = 1.0
MINUTE_S: Final[float] = 60 * SECOND_S

# =============================================================================
# EXPIRY
# =============================================================================
# Interval between expiry sweeps.
DEFAULT_SWEEP_PERIOD_S: Final[float] = 20 * MINUTE_S

# A session created without a sane TTL lives for sweep_period / TTL_DIVISOR.
TTL_DIVISOR: Final[int] = 2

# =============================================================================
# ACTOR
# =============================================================================
# 0 means unbounded, matching the absence of enqueue backpressure.
DEFAULT_QUEUE_MAXSIZE: Final[int] = 0

# =============================================================================
# ENVIRONMENT
# =============================================================================
ENV_PREFIX: Final[str] = "MEMSESSION_"
