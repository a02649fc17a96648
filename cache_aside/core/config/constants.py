"""
System Constants and Enumerations

This module defines the constants and enumerations shared by the cache-aside
engine: stage identifiers for structured logging, key suffixes, the lock
release script, and the outcome labels reported by the orchestrator.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state reporting
"""

from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Cache-aside processing stages.

    Format: {SEQUENCE}_{DESCRIPTIVE_NAME}
    Used as the ``stage`` field of every log entry so that the path a call
    took through the protocol can be read straight from the logs.
    """

    INITIALIZATION = "0.0_INITIALIZATION"
    INITIAL_READ = "2.1_INITIAL_READ"
    LOCK_ACQUIRE = "2.2_LOCK_ACQUIRE"
    DOUBLE_CHECK_READ = "2.3_DOUBLE_CHECK_READ"
    PRODUCE = "2.4_PRODUCE"
    CACHE_WRITE = "2.5_CACHE_WRITE"
    LOCK_RELEASE = "2.6_LOCK_RELEASE"
    WAIT_FOR_HOLDER = "2.7_WAIT_FOR_HOLDER"
    DIRECT_FALLBACK = "2.8_DIRECT_FALLBACK"
    SELF_HEAL = "2.9_SELF_HEAL"
    INVALIDATION = "3.0_INVALIDATION"
    RAW_ACCESS = "4.0_RAW_ACCESS"
    SHUTDOWN = "6.0_SHUTDOWN"

    # Cross-Cutting Concerns (Alphabetic Prefixes)
    REDIS = "R_REDIS"
    LOGGING = "L_LOGGING_OPERATIONS"


# ============================================================================
# Lookup Results and Outcomes
# ============================================================================


class LookupStatus(str, Enum):
    """
    Result of a single store read.

    HIT: entry present and decoded
    MISS: entry absent
    MALFORMED: entry present but undecodable
    UNAVAILABLE: the store could not be reached
    """

    HIT = "hit"
    MISS = "miss"
    MALFORMED = "malformed"
    UNAVAILABLE = "unavailable"


class CacheOutcome(str, Enum):
    """
    How a get_or_add call was satisfied.

    FALLBACK covers both store outages and an exhausted wait budget: the
    producer ran without the lock and nothing was written.
    """

    HIT = "hit"
    HIT_AFTER_LOCK = "hit_after_lock"
    HIT_AFTER_WAIT = "hit_after_wait"
    PRODUCED = "produced"
    FALLBACK = "fallback"


# ============================================================================
# Keys and Scripts
# ============================================================================

LOCK_KEY_SUFFIX = ":lock"

# Deletes KEYS[1] only while it still holds ARGV[1]; runs atomically in Redis
COMPARE_AND_DELETE_SCRIPT = """
if redis.call('get', KEYS[1]) == ARGV[1] then
    return redis.call('del', KEYS[1])
else
    return 0
end
"""

# SCAN batch size used by bulk invalidation
SCAN_BATCH_SIZE = 500

# ============================================================================
# Distributed Cache Adapter Defaults
# ============================================================================

ADAPTER_DEFAULT_EXPIRY_SECONDS = 20 * 60

# ============================================================================
# Logging
# ============================================================================

# Cache keys are truncated to this length in log entries
LOG_KEY_MAX_LENGTH = 120
