"""
System-Wide Constants for the Grid Container Client

Schema limits, symbol grammar limits and timing defaults are centralized
here so the schema model, the backend and the config layer agree.
"""

from typing import Final

# =============================================================================
# SIZE AND TIME UNITS
# =============================================================================
KB: Final[int] = 1024
MB: Final[int] = 1024 * KB

SECOND_MS: Final[int] = 1000
MINUTE_MS: Final[int] = 60 * SECOND_MS

# =============================================================================
# SCHEMA LIMITS
# =============================================================================
MIN_COLUMN_COUNT: Final[int] = 1
MAX_COLUMN_COUNT: Final[int] = 1024

MAX_CONTAINER_NAME_LENGTH: Final[int] = 16384
MAX_COLUMN_NAME_LENGTH: Final[int] = 256
MAX_INDEX_NAME_LENGTH: Final[int] = 16384
MAX_TRIGGER_NAME_LENGTH: Final[int] = 16384
MAX_DATA_AFFINITY_LENGTH: Final[int] = 8

# Maximum triggers per container
MAX_TRIGGER_COUNT: Final[int] = 64

# =============================================================================
# VALUE RANGES
# =============================================================================
BYTE_MIN: Final[int] = -(2 ** 7)
BYTE_MAX: Final[int] = 2 ** 7 - 1
SHORT_MIN: Final[int] = -(2 ** 15)
SHORT_MAX: Final[int] = 2 ** 15 - 1
INTEGER_MIN: Final[int] = -(2 ** 31)
INTEGER_MAX: Final[int] = 2 ** 31 - 1
LONG_MIN: Final[int] = -(2 ** 63)
LONG_MAX: Final[int] = 2 ** 63 - 1

# =============================================================================
# TIME-SERIES OPTIONS
# =============================================================================
MAX_EXPIRATION_DIVISION_COUNT: Final[int] = 160
UNSET: Final[int] = -1

# =============================================================================
# TRANSACTIONS
# =============================================================================
DEFAULT_TRANSACTION_TIMEOUT_MS: Final[int] = 300 * SECOND_MS
MIN_TRANSACTION_TIMEOUT_MS: Final[int] = 1
DEFAULT_LOCK_POLL_INTERVAL_MS: Final[int] = 50

# =============================================================================
# BACKEND
# =============================================================================
BLOB_COMPRESSION_THRESHOLD_BYTES: Final[int] = 1 * KB
