"""Ingestion: candidate discovery, deduplication, and content extraction."""

from .discovery import IGNORED_EXTENSIONS, IGNORED_NAMES, InboxScanner, scan_folder, should_include
from .extractors import ContentExtractor
from .dedup import ContentDeduplicator, DeduplicationResult, HashComputer

__all__ = [
    "InboxScanner",
    "scan_folder",
    "should_include",
    "IGNORED_NAMES",
    "IGNORED_EXTENSIONS",
    "ContentExtractor",
    "ContentDeduplicator",
    "DeduplicationResult",
    "HashComputer",
]
