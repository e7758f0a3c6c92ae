"""Thresholds for the awards shown at the end of a session."""

SPEED_DEMON_MIN_SCORE: int = 80
STREAK_MASTER_MIN_STREAK: int = 3
KNOWLEDGE_EXPERT_MIN_SCORE: int = 90
TOP_PERFORMER_COUNT: int = 3
CONSISTENT_PERFORMER_MIN_ANSWERS: int = 5
CONSISTENT_PERFORMER_MIN_SCORE: int = 60
CONSISTENT_PERFORMER_MAX_STD_DEV: float = 10.0
