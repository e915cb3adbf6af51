"""Vault data models: PARA categories and note frontmatter."""

from __future__ import annotations

from datetime import date
from enum import Enum
from typing import NamedTuple, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class _CategoryInfo(NamedTuple):
    folder_name: str
    display_name: str


class PARACategory(str, Enum):
    """The four PARA categories in their fixed display order."""

    PROJECT = "project"
    AREA = "area"
    RESOURCE = "resource"
    ARCHIVE = "archive"

    @property
    def folder_name(self) -> str:
        """Return the canonical vault folder name (e.g. ``2_Area``)."""
        return _CATEGORY_TABLE[self].folder_name

    @property
    def display_name(self) -> str:
        """Return the human readable category name."""
        return _CATEGORY_TABLE[self].display_name

    @classmethod
    def from_folder_name(cls, name: str) -> Optional["PARACategory"]:
        """Return the category whose folder name equals ``name``."""
        for category, info in _CATEGORY_TABLE.items():
            if info.folder_name == name:
                return category
        return None

    @classmethod
    def from_path(cls, path: str) -> Optional["PARACategory"]:
        """Detect the category from a path containing a PARA folder segment."""
        for category, info in _CATEGORY_TABLE.items():
            if f"/{info.folder_name}/" in path or path.endswith(f"/{info.folder_name}"):
                return category
        return None

    @classmethod
    def parse(cls, value: object) -> Optional["PARACategory"]:
        """Leniently coerce a value, display name, or folder name into a category."""
        if isinstance(value, PARACategory):
            return value
        if not isinstance(value, str):
            return None
        text = value.strip()
        by_folder = cls.from_folder_name(text)
        if by_folder is not None:
            return by_folder
        lowered = text.lower()
        for category in cls:
            if lowered in {category.value, category.display_name.lower()}:
                return category
        return None


_CATEGORY_TABLE: dict[PARACategory, _CategoryInfo] = {
    PARACategory.PROJECT: _CategoryInfo("1_Project", "Project"),
    PARACategory.AREA: _CategoryInfo("2_Area", "Area"),
    PARACategory.RESOURCE: _CategoryInfo("3_Resource", "Resource"),
    PARACategory.ARCHIVE: _CategoryInfo("4_Archive", "Archive"),
}


class NoteStatus(str, Enum):
    """Lifecycle status recorded in note frontmatter."""

    ACTIVE = "active"
    COMPLETED = "completed"
    ON_HOLD = "on-hold"


class NoteSource(str, Enum):
    """Provenance of a note."""

    IMPORT = "import"
    GENERATED = "generated"
    MANUAL = "manual"


class Frontmatter(BaseModel):
    """Structured metadata stored at the top of a vault note.

    Attributes:
        para: PARA category the note belongs to.
        tags: Sorted, de-duplicated tag list.
        created: First-seen creation date; never changed once set.
        status: Lifecycle status.
        summary: Free-text summary.
        source: Provenance of the note.
        project: Related project name.
        file: Original filename of an imported file.
    """

    model_config = ConfigDict(extra="ignore")

    para: Optional[PARACategory] = None
    tags: list[str] = Field(default_factory=list)
    created: Optional[date] = None
    status: Optional[NoteStatus] = None
    summary: Optional[str] = None
    source: Optional[NoteSource] = None
    project: Optional[str] = None
    file: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _normalize_tags(cls, value: list[str]) -> list[str]:
        cleaned = (tag.strip().lstrip("#").strip() for tag in value)
        return sorted({tag for tag in cleaned if tag})


__all__ = ["PARACategory", "NoteStatus", "NoteSource", "Frontmatter"]
