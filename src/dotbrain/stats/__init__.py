"""Usage statistics and persisted runtime settings."""

from .store import (
    HISTORY_LIMIT,
    ActivityEntry,
    StatisticsError,
    StatisticsStore,
    StoreSnapshot,
    VaultStatistics,
)

__all__ = [
    "StatisticsStore",
    "StatisticsError",
    "ActivityEntry",
    "StoreSnapshot",
    "VaultStatistics",
    "HISTORY_LIMIT",
]
