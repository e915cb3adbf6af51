"""Filesystem layout of a PARA vault."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path

from .models import PARACategory

DEFAULT_INBOX_DIRNAME = "_Inbox"
NOTE_SUFFIXES = frozenset({".md", ".markdown"})


def is_note(path: Path) -> bool:
    """Return True when ``path`` names a markdown note."""
    return path.suffix.lower() in NOTE_SUFFIXES


def is_hidden_name(name: str) -> bool:
    """Return True for dot-prefixed and underscore-prefixed entries."""
    return name.startswith(".") or name.startswith("_")


@dataclass(frozen=True, slots=True)
class VaultLayout:
    """Resolve the inbox and category directories under a vault root.

    Attributes:
        root: Vault root directory.
        inbox_dirname: Name of the inbox directory under the root.
    """

    root: Path
    inbox_dirname: str = DEFAULT_INBOX_DIRNAME

    @property
    def inbox_path(self) -> Path:
        return self.root / self.inbox_dirname

    def para_path(self, category: PARACategory) -> Path:
        """Return the directory holding ``category`` subfolders."""
        return self.root / category.folder_name

    def folder_path(self, category: PARACategory, name: str) -> Path:
        return self.para_path(category) / name

    def index_note_path(self, category: PARACategory, name: str) -> Path:
        """Return the path of the index note for a category subfolder."""
        return self.folder_path(category, name) / f"{name}.md"

    def category_of(self, path: Path) -> PARACategory | None:
        """Return the category a path lives under, if any."""
        try:
            relative = path.resolve().relative_to(self.root.resolve())
        except ValueError:
            return None
        if not relative.parts:
            return None
        return PARACategory.from_folder_name(relative.parts[0])

    def ensure_structure(self) -> list[Path]:
        """Create the inbox and category directories; return the ones created."""
        created: list[Path] = []
        for directory in [self.inbox_path, *(self.para_path(c) for c in PARACategory)]:
            if not directory.exists():
                directory.mkdir(parents=True, exist_ok=True)
                created.append(directory)
        return created


__all__ = [
    "VaultLayout",
    "DEFAULT_INBOX_DIRNAME",
    "NOTE_SUFFIXES",
    "is_note",
    "is_hidden_name",
]
