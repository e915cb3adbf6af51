"""Decide whether a classification is committed in place or deferred to the user."""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from datetime import date
from pathlib import Path
from typing import NamedTuple, Optional, Sequence, Union

from dotbrain.classification.models import (
    Candidate,
    ClassificationResult,
    ConfirmationReason,
    PendingConfirmation,
    ProcessedFileResult,
)
from dotbrain.stats.store import StatisticsStore
from dotbrain.vault.layout import VaultLayout, is_note
from dotbrain.vault.models import Frontmatter, NoteSource, NoteStatus, PARACategory
from dotbrain.vault.storage import read_note, write_note

from .mover import sanitize_name

LOGGER = logging.getLogger(__name__)

ALTERNATIVE_CONFIDENCE = 0.5


class FolderLocation(NamedTuple):
    """Where a candidate currently lives inside the vault."""

    category: PARACategory
    folder: str


@dataclass(frozen=True, slots=True)
class Commit:
    """An in-place commit: the written frontmatter and its result record."""

    result: ProcessedFileResult
    frontmatter: Optional[Frontmatter] = None


Decision = Union[Commit, PendingConfirmation]


def build_frontmatter(
    result: ClassificationResult,
    existing: Frontmatter,
    *,
    original_name: Optional[str] = None,
) -> Frontmatter:
    """Return frontmatter taken from ``result``; only ``created`` survives from ``existing``."""
    return Frontmatter(
        para=result.para,
        tags=result.tags,
        created=existing.created or date.today(),
        status=NoteStatus.ACTIVE,
        summary=result.summary or None,
        source=existing.source or NoteSource.IMPORT,
        project=result.project,
        file=existing.file or original_name,
    )


def generate_options(
    base: ClassificationResult, project_names: Sequence[str]
) -> list[ClassificationResult]:
    """Return ``base`` followed by one neutral alternative per other category."""
    options = [base]
    for category in PARACategory:
        if category is base.para:
            continue
        options.append(
            base.model_copy(
                update={
                    "para": category,
                    "project": (project_names[0] if project_names else None)
                    if category is PARACategory.PROJECT
                    else None,
                    "confidence": ALTERNATIVE_CONFIDENCE,
                }
            )
        )
    return options


class ReconciliationEngine:
    """Commit classifications that agree with a file's location; defer the rest."""

    def reconcile(
        self,
        candidate: Candidate,
        location: Optional[FolderLocation],
        result: ClassificationResult,
        project_names: Sequence[str] = (),
    ) -> Decision:
        """Reconcile ``result`` against the candidate's current location.

        Args:
            candidate: File being reconciled.
            location: Current category and subfolder, or ``None`` for inbox files.
            result: Classification for the candidate.
            project_names: Known project names, used for the Project alternative.

        Returns:
            Decision: A :class:`Commit` when category and folder both match,
            otherwise a :class:`PendingConfirmation`.
        """
        if location is None:
            return PendingConfirmation(
                candidate=candidate,
                options=generate_options(result, project_names),
                reason=ConfirmationReason.UNFILED,
            )
        if result.para is location.category and result.target_folder == location.folder:
            return self.commit(candidate, result)
        return PendingConfirmation(
            candidate=candidate,
            options=generate_options(result, project_names),
            reason=ConfirmationReason.MISCLASSIFIED,
        )

    def commit(self, candidate: Candidate, result: ClassificationResult) -> Commit:
        """Rewrite the candidate's frontmatter from ``result``.

        Files that are not notes are reported as classified without being
        rewritten.
        """
        path = candidate.path
        if not is_note(path):
            return Commit(result=_classified(path, result, "classified in place"))

        try:
            existing, body = read_note(path)
        except (OSError, UnicodeDecodeError) as exc:
            return Commit(
                result=ProcessedFileResult.error(
                    path, f"Read failed: {exc}", para=result.para, tags=result.tags
                )
            )

        frontmatter = build_frontmatter(result, existing)
        try:
            write_note(path, frontmatter, body)
        except OSError as exc:
            return Commit(
                result=ProcessedFileResult.error(
                    path, f"Write failed: {exc}", para=result.para, tags=frontmatter.tags
                )
            )
        LOGGER.debug("Committed %s as %s/%s", path.name, result.para.value, result.target_folder)
        return Commit(result=_classified(path, result, "frontmatter updated"), frontmatter=frontmatter)


class ConfirmationResolver:
    """Apply or discard a user's decision on a pending confirmation."""

    def __init__(self, layout: VaultLayout, *, statistics: StatisticsStore | None = None) -> None:
        self.layout = layout
        self.statistics = statistics

    def apply(
        self, pending: PendingConfirmation, option: Union[int, ClassificationResult] = 0
    ) -> ProcessedFileResult:
        """Move the candidate to the chosen option's folder and write its metadata.

        Args:
            pending: The deferred decision.
            option: Index into ``pending.options`` or one of its results.

        Returns:
            ProcessedFileResult: ``classified`` with the new path, or ``error``.
        """
        choice = pending.options[option] if isinstance(option, int) else option
        source = pending.candidate.path
        if not source.exists():
            return ProcessedFileResult.error(
                source, "File no longer exists", para=choice.para, tags=choice.tags
            )

        folder = sanitize_name(choice.target_folder)
        directory = self.layout.para_path(choice.para)
        if folder:
            directory = directory / folder
        destination = _free_destination(directory / source.name)

        try:
            directory.mkdir(parents=True, exist_ok=True)
            shutil.move(str(source), str(destination))
        except OSError as exc:
            return ProcessedFileResult.error(
                source, f"Move failed: {exc}", para=choice.para, tags=choice.tags
            )

        if destination.is_file() and is_note(destination):
            try:
                existing, body = read_note(destination)
                write_note(
                    destination,
                    build_frontmatter(choice, existing, original_name=source.name),
                    body,
                )
            except (OSError, UnicodeDecodeError) as exc:
                return ProcessedFileResult.error(
                    destination, f"Write failed: {exc}", para=choice.para, tags=choice.tags
                )

        if self.statistics is not None:
            self.statistics.record_activity(destination.name, choice.para.value, "moved")
        LOGGER.info("Filed %s under %s", source.name, destination.parent)
        return _classified(destination, choice, f"filed under {choice.para.folder_name}")

    def discard(self, pending: PendingConfirmation) -> None:
        """Leave the candidate untouched."""
        LOGGER.info("Skipped %s", pending.candidate.file_name)


def _classified(path: Path, result: ClassificationResult, message: str) -> ProcessedFileResult:
    return ProcessedFileResult(
        file_name=path.name,
        para=result.para,
        target_path=path,
        tags=sorted(set(result.tags)),
        message=message,
    )


def _free_destination(path: Path) -> Path:
    if not path.exists():
        return path
    stamp = int(time.time())
    candidate = path.with_name(f"{path.stem}_{stamp}{path.suffix}")
    counter = 1
    while candidate.exists():
        candidate = path.with_name(f"{path.stem}_{stamp}_{counter}{path.suffix}")
        counter += 1
    return candidate


__all__ = [
    "ReconciliationEngine",
    "ConfirmationResolver",
    "FolderLocation",
    "Commit",
    "Decision",
    "build_frontmatter",
    "generate_options",
    "ALTERNATIVE_CONFIDENCE",
]
