"""Build classifier hints from the current vault contents."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Optional

from dotbrain.vault.layout import VaultLayout, is_hidden_name
from dotbrain.vault.models import PARACategory
from dotbrain.vault.storage import read_note

from .models import FolderContext

LOGGER = logging.getLogger(__name__)


class ProjectContextBuilder:
    """Collect project names, project summaries, and existing subfolders."""

    def __init__(self, layout: VaultLayout) -> None:
        self.layout = layout

    def build(self) -> FolderContext:
        names = self.project_names()
        lines = []
        for name in names:
            summary = self.index_summary(PARACategory.PROJECT, name)
            lines.append(f"- {name}: {summary}" if summary else f"- {name}")

        folder_lines = []
        for category in (PARACategory.AREA, PARACategory.RESOURCE, PARACategory.ARCHIVE):
            folders = self.subfolders(category)
            if folders:
                folder_lines.append(f"{category.display_name}: {', '.join(folders)}")

        return FolderContext(
            project_names=names,
            project_context="\n".join(lines),
            subfolder_context="\n".join(folder_lines),
        )

    def project_names(self) -> List[str]:
        return self.subfolders(PARACategory.PROJECT)

    def subfolders(self, category: PARACategory) -> List[str]:
        """Return visible subfolder names of ``category`` sorted by name."""
        return [path.name for path in _visible_dirs(self.layout.para_path(category))]

    def index_summary(self, category: PARACategory, name: str) -> Optional[str]:
        """Return the ``summary`` field of a folder's index note, if any."""
        index = self.layout.index_note_path(category, name)
        if not index.is_file():
            return None
        try:
            frontmatter, _ = read_note(index)
        except (OSError, UnicodeDecodeError) as exc:
            LOGGER.debug("Could not read index note %s: %s", index, exc)
            return None
        return frontmatter.summary


def _visible_dirs(directory: Path) -> List[Path]:
    try:
        entries = sorted(directory.iterdir())
    except OSError:
        return []
    return [entry for entry in entries if entry.is_dir() and not is_hidden_name(entry.name)]


__all__ = ["ProjectContextBuilder"]
