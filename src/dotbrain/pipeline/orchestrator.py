"""End-to-end processing of the inbox or a category subfolder."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from pydantic import BaseModel, Field

from dotbrain.classification.context import ProjectContextBuilder
from dotbrain.classification.engine import Classifier
from dotbrain.classification.errors import ProviderError
from dotbrain.classification.models import (
    Candidate,
    PendingConfirmation,
    ProcessedFileResult,
    ProcessingStatus,
)
from dotbrain.ingestion.dedup import ContentDeduplicator
from dotbrain.ingestion.discovery import InboxScanner, scan_folder
from dotbrain.ingestion.extractors import ContentExtractor
from dotbrain.organization.mover import FolderNotFoundError, sanitize_name
from dotbrain.organization.reconciler import Commit, FolderLocation, ReconciliationEngine
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault.layout import VaultLayout
from dotbrain.vault.models import PARACategory

LOGGER = logging.getLogger(__name__)

FOLDER_EXCERPT_FILES = 5
FOLDER_EXCERPT_CHARS = 1000

ProgressCallback = Callable[[float, str], None]


@dataclass(frozen=True, slots=True)
class ScanTarget:
    """What a pipeline run processes: the inbox or one category subfolder."""

    category: Optional[PARACategory] = None
    folder_name: Optional[str] = None

    @classmethod
    def inbox(cls) -> "ScanTarget":
        return cls()

    @classmethod
    def folder(cls, category: PARACategory, name: str) -> "ScanTarget":
        return cls(category=category, folder_name=sanitize_name(name))

    @property
    def is_inbox(self) -> bool:
        return self.category is None

    @property
    def location(self) -> Optional[FolderLocation]:
        if self.category is None or self.folder_name is None:
            return None
        return FolderLocation(self.category, self.folder_name)

    def describe(self) -> str:
        if self.category is None:
            return "inbox"
        return f"{self.category.folder_name}/{self.folder_name}"


class PipelineResult(BaseModel):
    """Outcome of one pipeline run.

    Attributes:
        processed: Terminal records in commit order.
        needs_confirmation: Deferred classifications awaiting a decision.
        total: Number of entries found by the scan.
        cancelled: True when the run stopped early.
    """

    processed: List[ProcessedFileResult] = Field(default_factory=list)
    needs_confirmation: List[PendingConfirmation] = Field(default_factory=list)
    total: int = 0
    cancelled: bool = False

    @property
    def success_count(self) -> int:
        return sum(1 for result in self.processed if result.is_success)

    @property
    def failure_count(self) -> int:
        return sum(1 for result in self.processed if not result.is_success)

    @property
    def deduplicated_count(self) -> int:
        return sum(1 for r in self.processed if r.status is ProcessingStatus.DEDUPLICATED)


class _ProgressReporter:
    """Forward progress updates, dropping any that would not advance the fraction."""

    def __init__(self, callback: Optional[ProgressCallback]) -> None:
        self._callback = callback
        self._last = -1.0

    def __call__(self, fraction: float, status: str) -> None:
        fraction = min(1.0, max(0.0, fraction))
        if fraction <= self._last:
            return
        self._last = fraction
        if self._callback is not None:
            self._callback(fraction, status)


class PipelineOrchestrator:
    """Scan, deduplicate, extract, classify, and reconcile one target.

    Files are processed one at a time. Cancellation is honoured between
    per-file steps; already committed results are kept and returned.
    """

    def __init__(
        self,
        layout: VaultLayout,
        classifier: Classifier,
        *,
        statistics: StatisticsStore | None = None,
        extractor: ContentExtractor | None = None,
        deduplicator: ContentDeduplicator | None = None,
        engine: ReconciliationEngine | None = None,
        large_file_bytes: int | None = None,
    ) -> None:
        self.layout = layout
        self.classifier = classifier
        self.statistics = statistics
        self.extractor = extractor or ContentExtractor()
        self.deduplicator = deduplicator or ContentDeduplicator(statistics=statistics)
        self.engine = engine or ReconciliationEngine()
        self.scanner = InboxScanner(layout, large_file_bytes=large_file_bytes)
        self.context_builder = ProjectContextBuilder(layout)

    async def run(
        self,
        target: ScanTarget,
        on_progress: Optional[ProgressCallback] = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> PipelineResult:
        """Process ``target`` and return committed and deferred results.

        Raises:
            FolderNotFoundError: If a folder target does not exist.
            ClassificationError: If no candidate could be classified at all.
        """
        report = _ProgressReporter(on_progress)
        cancelled = cancel_event.is_set if cancel_event is not None else (lambda: False)

        files = self._scan(target)
        result = PipelineResult(total=len(files))
        report(0.05, f"{len(files)} file(s) found")
        LOGGER.info("Processing %s: %d entries", target.describe(), len(files))
        if cancelled():
            return self._cancel(result)

        entries = [path for path in files if path.is_dir()]
        dedup = self.deduplicator.deduplicate(
            [path for path in files if not path.is_dir()],
            category=target.category,
            should_stop=cancelled,
        )
        result.processed.extend(dedup.results)
        if dedup.stopped:
            return self._cancel(result)
        entries = sorted(entries + dedup.unique)
        report(0.10, "Duplicate check complete")

        if not entries:
            report(1.0, "Done")
            return result
        if cancelled():
            return self._cancel(result)

        context = self.context_builder.build()
        report(0.15, "Project context loaded")

        candidates: List[Candidate] = []
        for index, path in enumerate(entries):
            if cancelled():
                return self._cancel(result)
            report(0.15 + index / len(entries) * 0.15, f"Extracting {path.name}")
            candidates.append(Candidate.for_path(path, self._excerpt(path)))

        report(0.30, "AI classification started")
        outcomes = await self.classifier.classify_files(
            candidates,
            context,
            on_progress=lambda fraction, status: report(0.30 + fraction * 0.40, status),
        )

        location = target.location
        for index, (candidate, outcome) in enumerate(zip(candidates, outcomes)):
            if cancelled():
                return self._cancel(result)
            report(0.70 + index / len(candidates) * 0.25, f"Processing {candidate.file_name}")

            if isinstance(outcome, ProviderError):
                result.processed.append(
                    ProcessedFileResult.error(candidate.path, f"Classification failed: {outcome}")
                )
                continue

            decision = self.engine.reconcile(candidate, location, outcome, context.project_names)
            if isinstance(decision, Commit):
                result.processed.append(decision.result)
                if decision.result.is_success and self.statistics is not None:
                    self.statistics.record_activity(
                        candidate.file_name, outcome.para.value, "classified"
                    )
            else:
                result.needs_confirmation.append(decision)

        report(0.95, "Finishing up")
        report(1.0, "Done")
        LOGGER.info(
            "Finished %s: %d committed, %d failed, %d awaiting confirmation",
            target.describe(),
            result.success_count,
            result.failure_count,
            len(result.needs_confirmation),
        )
        return result

    def _scan(self, target: ScanTarget) -> List[Path]:
        if target.category is None:
            return self.scanner.scan()
        directory = self.layout.folder_path(target.category, target.folder_name or "")
        if not target.folder_name or not directory.is_dir():
            raise FolderNotFoundError(target.folder_name or "", target.category)
        return scan_folder(directory)

    def _excerpt(self, path: Path) -> str:
        if not path.is_dir():
            return self.extractor.extract(path)
        parts = [f"[folder: {path.name}]"]
        for child in self.scanner.files_in_directory(path)[:FOLDER_EXCERPT_FILES]:
            parts.append(f"## {child.name}\n{self.extractor.extract(child)[:FOLDER_EXCERPT_CHARS]}")
        return "\n\n".join(parts)

    @staticmethod
    def _cancel(result: PipelineResult) -> PipelineResult:
        LOGGER.info("Run cancelled after %d result(s)", len(result.processed))
        result.cancelled = True
        return result


__all__ = ["PipelineOrchestrator", "PipelineResult", "ScanTarget", "ProgressCallback"]
