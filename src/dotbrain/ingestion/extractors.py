"""Content extraction helpers used to build classification input."""

from __future__ import annotations

import mimetypes
from pathlib import Path

from PIL import Image, UnidentifiedImageError

DEFAULT_MAX_CHARS = 5000
SNIFF_BYTES = 8192

BINARY_SUFFIXES = frozenset(
    {
        ".pdf",
        ".png",
        ".jpg",
        ".jpeg",
        ".gif",
        ".webp",
        ".heic",
        ".tiff",
        ".bmp",
        ".zip",
        ".gz",
        ".tar",
        ".7z",
        ".docx",
        ".xlsx",
        ".pptx",
        ".key",
        ".pages",
        ".numbers",
        ".mp3",
        ".mp4",
        ".mov",
        ".wav",
        ".m4a",
        ".dmg",
        ".exe",
        ".bin",
    }
)
IMAGE_SUFFIXES = frozenset({".png", ".jpg", ".jpeg", ".gif", ".webp", ".tiff", ".bmp"})


class ContentExtractor:
    """Return a bounded text excerpt, or a description for binary files."""

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        self.max_chars = max_chars

    def extract(self, path: Path) -> str:
        """Return classification input for ``path``.

        Args:
            path: File to read.

        Returns:
            str: The first ``max_chars`` characters of a text file, a
            ``[binary file: ...]`` description for binary content, or
            ``[unreadable: name]`` when the file cannot be read.
        """
        try:
            if self._looks_binary(path):
                return self.describe(path)
            with path.open("r", encoding="utf-8", errors="replace") as handle:
                return handle.read(self.max_chars)
        except OSError:
            return f"[unreadable: {path.name}]"

    def describe(self, path: Path) -> str:
        """Describe a binary file by name, type, size and image dimensions."""
        size = path.stat().st_size
        mime_type, _ = mimetypes.guess_type(path.name)
        details = [mime_type or path.suffix.lstrip(".").lower() or "unknown", _format_size(size)]
        if path.suffix.lower() in IMAGE_SUFFIXES:
            dimensions = _image_dimensions(path)
            if dimensions:
                details.append(dimensions)
        return f"[binary file: {path.name} ({', '.join(details)})]"

    def _looks_binary(self, path: Path) -> bool:
        if path.suffix.lower() in BINARY_SUFFIXES:
            return True
        with path.open("rb") as handle:
            return b"\0" in handle.read(SNIFF_BYTES)


def _image_dimensions(path: Path) -> str | None:
    try:
        with Image.open(path) as img:
            width, height = img.size
    except (OSError, UnidentifiedImageError):
        return None
    return f"{width}x{height}"


def _format_size(size: int) -> str:
    value = float(size)
    for unit in ("B", "KB", "MB", "GB"):
        if value < 1024 or unit == "GB":
            return f"{int(value)} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


__all__ = ["ContentExtractor", "DEFAULT_MAX_CHARS"]
