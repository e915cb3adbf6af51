"""Candidate discovery for the inbox and category subfolders."""

from __future__ import annotations

import logging
from pathlib import Path

from dotbrain.vault.layout import VaultLayout, is_hidden_name

LOGGER = logging.getLogger(__name__)

IGNORED_NAMES = frozenset(
    {
        ".DS_Store",
        ".gitkeep",
        ".obsidian",
        "Thumbs.db",
        "desktop.ini",
        "Icon\r",
        ".localized",
        ".Spotlight-V100",
        ".Trashes",
        ".fseventsd",
        ".TemporaryItems",
    }
)
IGNORED_EXTENSIONS = frozenset({"tmp", "swp", "lock", "part"})


def should_include(name: str) -> bool:
    """Return True when an entry name is not a system, hidden, or temp file."""
    if name in IGNORED_NAMES or is_hidden_name(name):
        return False
    extension = name.rsplit(".", 1)[-1].lower() if "." in name else ""
    return extension not in IGNORED_EXTENSIONS


class InboxScanner:
    """List the top-level inbox entries awaiting processing."""

    def __init__(self, layout: VaultLayout, *, large_file_bytes: int | None = None) -> None:
        self.layout = layout
        self.large_file_bytes = large_file_bytes

    def scan(self) -> list[Path]:
        """Return inbox files and folders sorted by name.

        Symlinks that resolve outside the vault root are skipped.
        """
        inbox = self.layout.inbox_path
        try:
            entries = list(inbox.iterdir())
        except OSError:
            return []

        vault_root = self.layout.root.resolve()
        results: list[Path] = []
        for path in entries:
            if not should_include(path.name):
                continue
            if path.is_symlink():
                try:
                    resolved = path.resolve(strict=True)
                except OSError:
                    continue
                if vault_root != resolved and vault_root not in resolved.parents:
                    continue
            if not path.exists():
                continue
            self._warn_if_large(path)
            results.append(path)
        return sorted(results)

    def files_in_directory(self, directory: Path) -> list[Path]:
        """Return the regular files directly inside ``directory``."""
        try:
            entries = list(directory.iterdir())
        except OSError:
            return []
        return sorted(p for p in entries if should_include(p.name) and p.is_file())

    def _warn_if_large(self, path: Path) -> None:
        if self.large_file_bytes is None or not path.is_file():
            return
        try:
            size = path.stat().st_size
        except OSError:
            return
        if size > self.large_file_bytes:
            LOGGER.warning("Large inbox file: %s (%d MB)", path.name, size // (1024 * 1024))


def scan_folder(directory: Path) -> list[Path]:
    """Return files of a category subfolder eligible for reorganization.

    Hidden and underscore-prefixed entries, nested directories, and the
    folder's own index note are excluded.
    """
    index_name = f"{directory.name}.md"
    try:
        entries = list(directory.iterdir())
    except OSError:
        return []
    return sorted(
        path
        for path in entries
        if not is_hidden_name(path.name) and path.name != index_name and path.is_file()
    )


__all__ = ["InboxScanner", "scan_folder", "should_include", "IGNORED_NAMES", "IGNORED_EXTENSIONS"]
