"""Classification package: provider clients, request worker, and classifier."""

from .models import (
    Candidate,
    ClassificationResult,
    ConfirmationReason,
    FolderContext,
    PendingConfirmation,
    ProcessedFileResult,
    ProcessingStatus,
)
from .errors import ClassificationError, ProviderError, ProviderErrorKind
from .providers import AIProvider, ClaudeClient, GeminiClient, ProviderResponse
from .client import AIService
from .engine import Classifier
from .context import ProjectContextBuilder

__all__ = [
    "Candidate",
    "ClassificationResult",
    "ConfirmationReason",
    "FolderContext",
    "PendingConfirmation",
    "ProcessedFileResult",
    "ProcessingStatus",
    "ClassificationError",
    "ProviderError",
    "ProviderErrorKind",
    "AIProvider",
    "ClaudeClient",
    "GeminiClient",
    "ProviderResponse",
    "AIService",
    "Classifier",
    "ProjectContextBuilder",
]
