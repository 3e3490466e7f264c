"""
System Constants and Enumerations

Values that are part of the behaviour contract rather than deployment tuning,
so they are not exposed through Settings.
"""

from enum import Enum

# ============================================================================
# Background updater
# ============================================================================

# A snapshot older than this is never served from the in-process copy.
HEALTH_STALENESS_SECONDS = 300

# /healthz gives up on the base node version after this long.
HEALTH_VERSION_TIMEOUT_SECONDS = 5

# Hard upper bound for the index page size.
MAX_PAGE_LIMIT = 100

DEFAULT_PAGE_FROM = 0
DEFAULT_PAGE_LIMIT = 20

# Lock name of the index refresh critical section.
UPDATER_LOCK_NAME = "background_updater:main"


# ============================================================================
# Snapshot builder
# ============================================================================

# Number of recent headers used for the algorithm split and block times.
RECENT_HEADERS_COUNT = 101

# Difficulty samples requested from the tip.
DIFFICULTY_SAMPLES_FROM_TIP = 180

# Width of the hash-rate chart window.
HASH_RATE_WINDOW = 720

# Reference miner hash rates used for the "average miners" estimate.
SHA3X_MINER_HASH_RATE = 200_000_000
RANDOMX_MINER_HASH_RATE = 2700

# Block time targets in minutes.
TARGET_BLOCK_TIME_MINUTES = 2
TARGET_ALGO_BLOCK_TIME_MINUTES = 6


class PowAlgo(str, Enum):
    """
    Proof-of-work algorithm identifiers as reported by the base node.
    """

    MONERO_RANDOMX = "0"
    SHA3X = "1"
    TARI_RANDOMX = "2"


POW_NAMES = {
    PowAlgo.MONERO_RANDOMX.value: "MoneroRx",
    PowAlgo.SHA3X.value: "SHA-3X",
    PowAlgo.TARI_RANDOMX.value: "TariRx",
}


# ============================================================================
# Lock / update outcomes (metrics labels and log fields)
# ============================================================================


class LockOutcome(str, Enum):
    ACQUIRED = "acquired"
    CONTENDED = "contended"
    RELEASED = "released"
    NOT_OWNER = "not_owner"
    RENEWED = "renewed"
    ERROR = "error"


class UpdateOutcome(str, Enum):
    SUCCESS = "success"
    UNCHANGED = "unchanged"
    EXHAUSTED = "exhausted"
    LOCKED_ELSEWHERE = "locked_elsewhere"
    SKIPPED = "skipped"


# ============================================================================
# HTTP Headers
# ============================================================================

HEADER_REQUEST_ID = "X-Request-ID"
HEADER_CACHE_CONTROL = "Cache-Control"
