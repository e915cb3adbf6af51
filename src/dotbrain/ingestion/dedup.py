"""Content-addressed deduplication of candidate files."""

from __future__ import annotations

import hashlib
import logging
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Iterable, Optional

from dotbrain.classification.models import ProcessedFileResult, ProcessingStatus
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault import frontmatter as codec
from dotbrain.vault.layout import is_note
from dotbrain.vault.models import PARACategory
from dotbrain.vault.storage import read_note, write_note

LOGGER = logging.getLogger(__name__)


class HashComputer:
    """Compute SHA-256 content fingerprints for deduplication."""

    def compute(self, path: Path) -> str:
        """Return a hex digest of the file's content.

        Notes are hashed over their trimmed body so that frontmatter edits do
        not hide duplicates; other files are hashed over their raw bytes. When
        a file cannot be read a random placeholder is returned so the file is
        treated as unique.
        """
        try:
            if is_note(path):
                body = codec.strip(path.read_text(encoding="utf-8")).strip()
                return hashlib.sha256(body.encode("utf-8")).hexdigest()
            digest = hashlib.sha256()
            with path.open("rb") as handle:
                for chunk in iter(lambda: handle.read(1024 * 1024), b""):
                    digest.update(chunk)
            return digest.hexdigest()
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.warning("Could not fingerprint %s: %s", path, exc)
            return f"unreadable-{uuid.uuid4().hex}"


@dataclass(slots=True)
class DeduplicationResult:
    """Outcome of a deduplication pass.

    Attributes:
        unique: Retained files in scan order.
        results: Terminal records for removed duplicates and failed merges.
        stopped: True when the pass was interrupted before every file was seen.
    """

    unique: list[Path] = field(default_factory=list)
    results: list[ProcessedFileResult] = field(default_factory=list)
    stopped: bool = False


class ContentDeduplicator:
    """Collapse files with identical content, keeping the first in scan order."""

    def __init__(
        self,
        hasher: HashComputer | None = None,
        *,
        statistics: StatisticsStore | None = None,
    ) -> None:
        self.hasher = hasher or HashComputer()
        self.statistics = statistics

    def deduplicate(
        self,
        files: Iterable[Path],
        *,
        category: Optional[PARACategory] = None,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> DeduplicationResult:
        """Remove duplicates from ``files`` after merging their tags.

        A duplicate is only deleted once its tags are safely merged into the
        retained file; when the merge cannot be written both files are kept
        and an error record is returned instead.

        Args:
            files: Candidate files, already sorted by name.
            category: Category of the folder being processed, for reporting.
            should_stop: Checked before each file; when it returns True the
                remaining files are left untouched.

        Returns:
            DeduplicationResult: Retained files and records for removed duplicates.
        """
        outcome = DeduplicationResult()
        seen: dict[str, Path] = {}

        for path in files:
            if should_stop is not None and should_stop():
                outcome.stopped = True
                break
            fingerprint = self.hasher.compute(path)
            retained = seen.get(fingerprint)
            if retained is None:
                seen[fingerprint] = path
                outcome.unique.append(path)
                continue

            try:
                self.merge_tags(source=path, target=retained)
            except (OSError, UnicodeDecodeError) as exc:
                LOGGER.warning("Keeping duplicate %s; tag merge failed: %s", path, exc)
                outcome.results.append(
                    ProcessedFileResult.error(
                        path, f"Duplicate of {retained.name}; tag merge failed: {exc}", para=category
                    )
                )
                continue
            try:
                path.unlink()
            except OSError as exc:
                LOGGER.warning("Could not delete duplicate %s: %s", path, exc)
                outcome.results.append(
                    ProcessedFileResult.error(
                        path, f"Duplicate of {retained.name}; delete failed: {exc}", para=category
                    )
                )
                continue

            LOGGER.info("Removed duplicate %s (kept %s)", path.name, retained.name)
            outcome.results.append(
                ProcessedFileResult(
                    file_name=path.name,
                    para=category,
                    target_path=retained,
                    status=ProcessingStatus.DEDUPLICATED,
                    message=f"Duplicate of {retained.name}; tags merged and file deleted",
                )
            )
            if self.statistics is not None:
                self.statistics.increment_duplicates()
                self.statistics.record_activity(
                    path.name, category.value if category else "inbox", "deduplicated"
                )

        return outcome

    def merge_tags(self, *, source: Path, target: Path) -> bool:
        """Union the tags of ``source`` into ``target``.

        Returns:
            bool: True when ``target`` was rewritten, False when there was
            nothing to merge (the tag sets already agree, or either file is
            not a note).

        Raises:
            OSError: If either note cannot be read or the merge cannot be written.
            UnicodeDecodeError: If either note is not valid UTF-8.
        """
        if not (is_note(source) and is_note(target)):
            return False
        source_fm, _ = read_note(source)
        target_fm, target_body = read_note(target)

        merged = sorted(set(target_fm.tags) | set(source_fm.tags))
        if merged == sorted(target_fm.tags):
            return False

        write_note(target, target_fm.model_copy(update={"tags": merged}), target_body)
        return True


__all__ = ["HashComputer", "ContentDeduplicator", "DeduplicationResult"]
