"""Move whole folders between PARA categories.

Moving a folder rewrites the ``para`` and ``status`` fields of every note it
contains before the folder itself is relocated, so a failed rewrite leaves
the folder where it was. Moving into the archive marks ``[[name]]``
references across the vault as completed; moving out of it removes the mark.
"""

from __future__ import annotations

import logging
import shutil
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Iterator, List, Literal

from dotbrain.vault.layout import VaultLayout, is_hidden_name, is_note
from dotbrain.vault.models import NoteStatus, PARACategory
from dotbrain.vault.storage import atomic_write_text, read_note, write_note

LOGGER = logging.getLogger(__name__)

COMPLETION_MARKER = "(completed)"
MAX_SEGMENTS = 3
MAX_SEGMENT_LENGTH = 255

ConflictPolicy = Literal["suffix", "error"]


class ParaMoveError(Exception):
    """Base class for folder move failures."""

    def __init__(self, name: str, category: PARACategory) -> None:
        self.name = name
        self.category = category
        super().__init__(self._describe())

    def _describe(self) -> str:
        return f"'{self.name}' ({self.category.display_name})"


class FolderNotFoundError(ParaMoveError):
    """Raised when the source folder does not exist."""

    def _describe(self) -> str:
        return f"Folder '{self.name}' not found in {self.category.display_name}"


class FolderExistsError(ParaMoveError):
    """Raised when the destination exists and suffixing is disabled."""

    def _describe(self) -> str:
        return f"Folder '{self.name}' already exists in {self.category.display_name}"


@dataclass(frozen=True, slots=True)
class FolderSummary:
    """A category subfolder with its entry count and index-note summary."""

    name: str
    file_count: int
    summary: str = ""


def sanitize_name(name: str) -> str:
    """Return a safe relative folder name.

    ``.``, ``..`` and empty segments are dropped, control characters are
    removed, each segment is trimmed and capped at 255 characters, and at most
    three segments are kept.
    """
    segments = [part for part in name.split("/") if part not in {"", ".", ".."}]
    cleaned: List[str] = []
    for segment in segments[:MAX_SEGMENTS]:
        text = "".join(ch for ch in segment if ord(ch) >= 32 and ord(ch) != 127).strip()
        if text:
            cleaned.append(text[:MAX_SEGMENT_LENGTH])
    return "/".join(cleaned)


def completion_token(name: str) -> str:
    return f"[[{name}]] {COMPLETION_MARKER}"


class PARAMover:
    """Relocate category subfolders and keep their notes consistent."""

    def __init__(self, layout: VaultLayout, *, on_conflict: ConflictPolicy = "suffix") -> None:
        self.layout = layout
        self.on_conflict = on_conflict

    def move_folder(self, name: str, source: PARACategory, target: PARACategory) -> int:
        """Move folder ``name`` from ``source`` to ``target``.

        Args:
            name: Folder name, possibly nested (``a/b``).
            source: Category currently holding the folder.
            target: Destination category.

        Returns:
            int: Number of notes whose frontmatter was rewritten.

        Raises:
            FolderNotFoundError: If the folder does not exist under ``source``.
            FolderExistsError: If the destination exists and ``on_conflict`` is ``error``.
            OSError: If a note rewrite or the move itself fails.
        """
        safe_name = sanitize_name(name)
        source_dir = self.layout.para_path(source) / safe_name
        if not safe_name or not source_dir.is_dir():
            raise FolderNotFoundError(safe_name or name, source)

        destination = self.layout.para_path(target) / safe_name
        if destination.exists():
            if self.on_conflict == "error":
                raise FolderExistsError(safe_name, target)
            destination = destination.with_name(f"{destination.name}_{int(time.time())}")

        status = NoteStatus.COMPLETED if target is PARACategory.ARCHIVE else NoteStatus.ACTIVE
        updated = self._update_notes(source_dir, status=status, para=target)

        destination.parent.mkdir(parents=True, exist_ok=True)
        shutil.move(str(source_dir), str(destination))
        LOGGER.info(
            "Moved %s from %s to %s (%d notes updated)",
            safe_name,
            source.folder_name,
            destination.relative_to(self.layout.root),
            updated,
        )

        if target is PARACategory.ARCHIVE:
            self.mark_references(safe_name, completed=True)
        elif source is PARACategory.ARCHIVE:
            self.mark_references(safe_name, completed=False)
        return updated

    def list_folders(self, category: PARACategory) -> List[FolderSummary]:
        """Return visible subfolders of ``category`` sorted by name."""
        base = self.layout.para_path(category)
        try:
            entries = sorted(base.iterdir())
        except OSError:
            return []

        summaries: List[FolderSummary] = []
        for entry in entries:
            if is_hidden_name(entry.name) or not entry.is_dir():
                continue
            index_name = f"{entry.name}.md"
            try:
                count = sum(
                    1
                    for child in entry.iterdir()
                    if not is_hidden_name(child.name) and child.name != index_name
                )
            except OSError:
                count = 0
            summary = ""
            index = entry / index_name
            if index.is_file():
                try:
                    summary = read_note(index)[0].summary or ""
                except (OSError, UnicodeDecodeError):
                    summary = ""
            summaries.append(FolderSummary(name=entry.name, file_count=count, summary=summary))
        return summaries

    def mark_references(self, name: str, *, completed: bool) -> int:
        """Add or remove the completion marker on ``[[name]]`` across the vault.

        The text is first normalized to the unmarked form and then, when
        ``completed``, marked again, so repeated calls never double the marker.

        Returns:
            int: Number of notes rewritten.
        """
        plain = f"[[{name}]]"
        marked = completion_token(name)
        count = 0
        for path in self._vault_notes():
            try:
                content = path.read_text(encoding="utf-8")
            except (OSError, UnicodeDecodeError):
                continue
            updated = content.replace(marked, plain)
            if completed:
                updated = updated.replace(plain, marked)
            if updated == content:
                continue
            try:
                atomic_write_text(path, updated)
            except OSError as exc:
                LOGGER.warning("Could not update references in %s: %s", path, exc)
                continue
            count += 1
        return count

    # ------------------------------------------------------------------ #
    # Walks                                                              #
    # ------------------------------------------------------------------ #

    def _update_notes(self, directory: Path, *, status: NoteStatus, para: PARACategory) -> int:
        count = 0
        for path in _walk_files(directory, skip_hidden_dirs=False):
            if not is_note(path) or is_hidden_name(path.name):
                continue
            try:
                frontmatter, body = read_note(path)
            except (OSError, UnicodeDecodeError):
                continue
            write_note(path, frontmatter.model_copy(update={"status": status, "para": para}), body)
            count += 1
        return count

    def _vault_notes(self) -> Iterator[Path]:
        for category in PARACategory:
            for path in _walk_files(self.layout.para_path(category), skip_hidden_dirs=True):
                if is_note(path) and not is_hidden_name(path.name):
                    yield path


def _walk_files(root: Path, *, skip_hidden_dirs: bool) -> Iterator[Path]:
    stack = [root]
    while stack:
        current = stack.pop()
        try:
            entries = sorted(current.iterdir(), reverse=True)
        except OSError:
            continue
        for entry in entries:
            if entry.is_dir() and not entry.is_symlink():
                if skip_hidden_dirs and is_hidden_name(entry.name):
                    continue
                stack.append(entry)
            elif entry.is_file():
                yield entry


__all__ = [
    "PARAMover",
    "ParaMoveError",
    "FolderNotFoundError",
    "FolderExistsError",
    "FolderSummary",
    "COMPLETION_MARKER",
    "sanitize_name",
    "completion_token",
]
