"""PARA vault primitives: categories, frontmatter codec, layout, and note IO."""

from . import frontmatter
from .layout import DEFAULT_INBOX_DIRNAME, VaultLayout, is_hidden_name, is_note
from .models import Frontmatter, NoteSource, NoteStatus, PARACategory
from .storage import atomic_write_text, read_note, write_note

__all__ = [
    "frontmatter",
    "Frontmatter",
    "NoteSource",
    "NoteStatus",
    "PARACategory",
    "VaultLayout",
    "DEFAULT_INBOX_DIRNAME",
    "is_hidden_name",
    "is_note",
    "atomic_write_text",
    "read_note",
    "write_note",
]
