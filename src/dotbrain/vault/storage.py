"""Note reading and atomic single-file writes."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Tuple

from . import frontmatter as codec
from .models import Frontmatter


def atomic_write_text(path: Path, text: str) -> None:
    """Write ``text`` to ``path`` via a sibling temp file and an atomic replace.

    Args:
        path: Destination file.
        text: UTF-8 text to write.

    Raises:
        OSError: If the temp file cannot be written or moved into place.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    temp_path = Path(temp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
        temp_path.replace(path)
    except BaseException:
        temp_path.unlink(missing_ok=True)
        raise


def read_note(path: Path) -> Tuple[Frontmatter, str]:
    """Read a note and split it into frontmatter and body.

    Raises:
        OSError: If the file cannot be read.
        UnicodeDecodeError: If the file is not valid UTF-8.
    """
    return codec.parse(path.read_text(encoding="utf-8"))


def write_note(path: Path, frontmatter: Frontmatter, body: str) -> None:
    """Atomically write ``frontmatter`` followed by ``body`` to ``path``."""
    atomic_write_text(path, codec.render(frontmatter, body))


__all__ = ["atomic_write_text", "read_note", "write_note"]
