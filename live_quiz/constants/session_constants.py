"""Constants governing live sessions, join codes and data retention."""

# 0/O and 1/I are left out so codes can be read aloud and typed from a projector.
JOIN_CODE_ALPHABET: str = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"
JOIN_CODE_LENGTH: int = 6
JOIN_CODE_MAX_ATTEMPTS: int = 5

DEFAULT_TIME_LIMIT_SECONDS: int = 600
TIMER_TICK_SECONDS: float = 1.0
POLL_INTERVAL_SECONDS: float = 2.0

RETENTION_DAYS: int = 28

STORE_RETRY_ATTEMPTS: int = 3
STORE_RETRY_DELAY_SECONDS: float = 0.05

SCHEMA_VERSION: int = 2
