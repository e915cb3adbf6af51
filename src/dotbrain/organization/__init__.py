"""Organization: reconciliation of classifications and PARA folder moves."""

from .mover import (
    COMPLETION_MARKER,
    FolderExistsError,
    FolderNotFoundError,
    FolderSummary,
    PARAMover,
    ParaMoveError,
    sanitize_name,
)
from .reconciler import (
    Commit,
    ConfirmationResolver,
    FolderLocation,
    ReconciliationEngine,
    build_frontmatter,
    generate_options,
)

__all__ = [
    "PARAMover",
    "ParaMoveError",
    "FolderNotFoundError",
    "FolderExistsError",
    "FolderSummary",
    "COMPLETION_MARKER",
    "sanitize_name",
    "ReconciliationEngine",
    "ConfirmationResolver",
    "FolderLocation",
    "Commit",
    "build_frontmatter",
    "generate_options",
]
