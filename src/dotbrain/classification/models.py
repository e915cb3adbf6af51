"""Classification and processing result models."""

from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from dotbrain.vault.models import PARACategory


class Candidate(BaseModel):
    """A file queued for classification within one pipeline run.

    Attributes:
        path: Location of the file.
        file_name: Display name of the file.
        content: Cached excerpt used as classification input.
    """

    path: Path
    file_name: str
    content: str = ""

    @classmethod
    def for_path(cls, path: Path, content: str = "") -> "Candidate":
        return cls(path=path, file_name=path.name, content=content)


class ClassificationResult(BaseModel):
    """Classification returned for a single candidate.

    Attributes:
        para: Target PARA category.
        tags: Suggested tags.
        target_folder: Subfolder name inside the category.
        summary: One-line summary of the content.
        project: Related project name, if any.
        confidence: Model confidence between 0 and 1.
    """

    para: PARACategory
    tags: List[str] = Field(default_factory=list)
    target_folder: str = ""
    summary: str = ""
    project: Optional[str] = None
    confidence: float = 0.0

    @field_validator("confidence")
    @classmethod
    def _clamp_confidence(cls, value: float) -> float:
        return min(1.0, max(0.0, value))


class ConfirmationReason(str, Enum):
    """Why a classification was deferred to the user."""

    MISCLASSIFIED = "misclassified"
    UNFILED = "unfiled"


class PendingConfirmation(BaseModel):
    """A deferred classification awaiting a user decision.

    Attributes:
        candidate: The file the decision concerns.
        options: Primary result first, then one alternative per other category.
        reason: Why the result was not committed automatically.
    """

    candidate: Candidate
    options: List[ClassificationResult]
    reason: ConfirmationReason = ConfirmationReason.MISCLASSIFIED

    @property
    def primary(self) -> ClassificationResult:
        return self.options[0]

    @property
    def alternatives(self) -> List[ClassificationResult]:
        return self.options[1:]


class ProcessingStatus(str, Enum):
    """Terminal outcome of a processed file."""

    CLASSIFIED = "classified"
    DEDUPLICATED = "deduplicated"
    ERROR = "error"


class ProcessedFileResult(BaseModel):
    """Immutable record of a committed action, used for reporting.

    Attributes:
        file_name: Name of the processed file.
        para: Category the file was committed to, when known.
        target_path: Resulting location (the retained copy for duplicates).
        tags: Tags written for the file.
        status: Outcome of the processing step.
        message: Short human-readable detail.
    """

    model_config = ConfigDict(frozen=True)

    file_name: str
    para: Optional[PARACategory] = None
    target_path: Path
    tags: List[str] = Field(default_factory=list)
    status: ProcessingStatus = ProcessingStatus.CLASSIFIED
    message: str = ""

    @property
    def is_success(self) -> bool:
        return self.status is not ProcessingStatus.ERROR

    @classmethod
    def error(
        cls,
        path: Path,
        message: str,
        *,
        para: Optional[PARACategory] = None,
        tags: Optional[List[str]] = None,
    ) -> "ProcessedFileResult":
        """Build an ``error`` record for ``path``."""
        return cls(
            file_name=path.name,
            para=para,
            target_path=path,
            tags=list(tags or []),
            status=ProcessingStatus.ERROR,
            message=message,
        )


class FolderContext(BaseModel):
    """Vault hints passed to the classifier alongside candidates."""

    project_names: List[str] = Field(default_factory=list)
    project_context: str = ""
    subfolder_context: str = ""


ModelTier = Literal["fast", "precise"]


__all__ = [
    "Candidate",
    "ClassificationResult",
    "ConfirmationReason",
    "PendingConfirmation",
    "ProcessingStatus",
    "ProcessedFileResult",
    "FolderContext",
    "ModelTier",
]
