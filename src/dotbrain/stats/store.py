"""Persistent settings and usage statistics.

The store keeps the selected provider, the cumulative API cost, the duplicate
counter, and a bounded activity log in one JSON document. Every
read-modify-write runs under a lock so concurrent recorders never lose
updates within a process. Recording never interrupts a pipeline run: a
corrupt file is set aside and replaced, and write failures are logged.
"""

from __future__ import annotations

import json
import logging
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Callable, Dict, List, Optional

from pydantic import BaseModel, Field, ValidationError

from dotbrain.vault.layout import VaultLayout, is_hidden_name
from dotbrain.vault.models import PARACategory
from dotbrain.vault.storage import atomic_write_text

LOGGER = logging.getLogger(__name__)

HISTORY_LIMIT = 100


class StatisticsError(Exception):
    """Raised when the statistics file exists but cannot be decoded."""


class ActivityEntry(BaseModel):
    """One recorded pipeline action."""

    file_name: str
    category: str
    action: str
    date: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class StoreSnapshot(BaseModel):
    """Persisted contents of the statistics store."""

    selected_provider: Optional[str] = None
    api_cost: float = 0.0
    duplicates_found: int = 0
    activity: List[ActivityEntry] = Field(default_factory=list)


class VaultStatistics(BaseModel):
    """Aggregate view combining vault file counts and stored counters."""

    total_files: int = 0
    by_category: Dict[str, int] = Field(default_factory=dict)
    recent_activity: List[ActivityEntry] = Field(default_factory=list)
    api_cost: float = 0.0
    duplicates_found: int = 0


class StatisticsStore:
    """JSON-backed settings and metrics store with serialized updates."""

    def __init__(self, path: Path, *, history_limit: int = HISTORY_LIMIT) -> None:
        self._path = path
        self._history_limit = history_limit
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._path

    def read(self) -> StoreSnapshot:
        """Return the stored snapshot, or defaults when nothing is stored yet.

        Raises:
            StatisticsError: If the file cannot be decoded.
        """
        with self._lock:
            return self._load()

    def record_activity(self, file_name: str, category: str, action: str) -> None:
        """Prepend an activity entry, keeping at most ``history_limit`` entries."""
        entry = ActivityEntry(file_name=file_name, category=category, action=action)

        def _apply(snapshot: StoreSnapshot) -> None:
            snapshot.activity.insert(0, entry)
            del snapshot.activity[self._history_limit :]

        self._record(_apply)

    def add_api_cost(self, cost: float) -> None:
        """Add ``cost`` (USD) to the cumulative API cost."""

        def _apply(snapshot: StoreSnapshot) -> None:
            snapshot.api_cost += cost

        self._record(_apply)

    def increment_duplicates(self, count: int = 1) -> None:
        def _apply(snapshot: StoreSnapshot) -> None:
            snapshot.duplicates_found += count

        self._record(_apply)

    def selected_provider(self) -> Optional[str]:
        try:
            return self.read().selected_provider
        except (StatisticsError, OSError) as exc:
            LOGGER.warning("Ignoring unreadable statistics at %s: %s", self._path, exc)
            return None

    def set_selected_provider(self, provider: Optional[str]) -> None:
        def _apply(snapshot: StoreSnapshot) -> None:
            snapshot.selected_provider = provider

        self._update(_apply)

    def collect(self, layout: VaultLayout) -> VaultStatistics:
        """Count vault files per category and merge in stored counters."""
        snapshot = self.read()
        stats = VaultStatistics(
            recent_activity=snapshot.activity,
            api_cost=snapshot.api_cost,
            duplicates_found=snapshot.duplicates_found,
        )
        for category in PARACategory:
            count = _count_files(layout.para_path(category))
            stats.by_category[category.value] = count
            stats.total_files += count
        return stats

    def _record(self, mutate: Callable[[StoreSnapshot], None]) -> None:
        try:
            self._update(mutate)
        except OSError as exc:
            LOGGER.warning("Could not update statistics at %s: %s", self._path, exc)

    def _update(self, mutate: Callable[[StoreSnapshot], None]) -> None:
        with self._lock:
            try:
                snapshot = self._load()
            except StatisticsError as exc:
                snapshot = self._quarantine(exc)
            mutate(snapshot)
            atomic_write_text(self._path, snapshot.model_dump_json(indent=2))

    def _load(self) -> StoreSnapshot:
        if not self._path.exists():
            return StoreSnapshot()
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return StoreSnapshot.model_validate(data)
        except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as exc:
            raise StatisticsError(f"Invalid statistics data at {self._path}: {exc}") from exc

    def _quarantine(self, error: StatisticsError) -> StoreSnapshot:
        backup = self._path.with_name(f"{self._path.name}.corrupt")
        LOGGER.warning("%s; moving it to %s and starting fresh", error, backup.name)
        try:
            self._path.replace(backup)
        except OSError as exc:
            LOGGER.warning("Could not set aside %s: %s", self._path, exc)
        return StoreSnapshot()


def _count_files(directory: Path) -> int:
    count = 0
    stack = [directory]
    while stack:
        current = stack.pop()
        try:
            entries = list(current.iterdir())
        except OSError:
            continue
        for entry in entries:
            if is_hidden_name(entry.name):
                continue
            if entry.is_dir():
                stack.append(entry)
            elif entry.is_file():
                count += 1
    return count


__all__ = [
    "StatisticsStore",
    "StatisticsError",
    "ActivityEntry",
    "StoreSnapshot",
    "VaultStatistics",
    "HISTORY_LIMIT",
]
