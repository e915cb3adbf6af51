"""Parse and serialize the YAML frontmatter block of vault notes.

Parsing never fails: a missing, unterminated, or malformed block degrades to
an empty :class:`Frontmatter` and returns the whole text as the body so that
hand-edited notes never stop the pipeline.
"""

from __future__ import annotations

import logging
from datetime import date, datetime
from enum import Enum
from typing import Any, Mapping, Optional, Tuple, Type, TypeVar

import yaml

from .models import Frontmatter, NoteSource, NoteStatus, PARACategory

LOGGER = logging.getLogger(__name__)

DELIMITER = "---"
FIELD_ORDER = ("para", "tags", "created", "status", "summary", "source", "project", "file")

_E = TypeVar("_E", bound=Enum)


def split_block(text: str) -> Tuple[Optional[str], str]:
    """Split ``text`` into the raw frontmatter block and the body.

    Returns:
        Tuple[Optional[str], str]: Raw YAML (``None`` when absent) and the body.
    """
    lines = text.splitlines(keepends=True)
    if not lines or lines[0].rstrip() != DELIMITER:
        return None, text
    for index in range(1, len(lines)):
        if lines[index].rstrip() == DELIMITER:
            return "".join(lines[1:index]), "".join(lines[index + 1 :])
    return None, text


def parse(text: str) -> Tuple[Frontmatter, str]:
    """Return the frontmatter and body of a note.

    Args:
        text: Full note contents.

    Returns:
        Tuple[Frontmatter, str]: Parsed metadata and the remaining body.
    """
    block, body = split_block(text)
    if block is None:
        return Frontmatter(), text
    try:
        raw = yaml.safe_load(block)
    except yaml.YAMLError as exc:
        LOGGER.debug("Ignoring malformed frontmatter: %s", exc)
        return Frontmatter(), text
    if raw is None:
        return Frontmatter(), body
    if not isinstance(raw, Mapping):
        return Frontmatter(), text
    return _coerce(raw), body


def strip(text: str) -> str:
    """Return the body of a note with the frontmatter block removed."""
    _, body = parse(text)
    return body


# YAML readers fold these into plain spaces unless they are escaped.
_UNICODE_BREAKS = ("\x85", "\u2028", "\u2029")


class _NoteDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, value: str) -> yaml.ScalarNode:
    if any(mark in value for mark in _UNICODE_BREAKS):
        return dumper.represent_scalar("tag:yaml.org,2002:str", value, style='"')
    return dumper.represent_str(value)


_NoteDumper.add_representer(str, _represent_str)


def stringify(frontmatter: Frontmatter) -> str:
    """Serialize frontmatter with a fixed field order and sorted tags."""
    data: dict[str, Any] = {}
    for name in FIELD_ORDER:
        value = getattr(frontmatter, name)
        if name == "tags":
            data[name] = sorted(value)
            continue
        if value is None:
            continue
        data[name] = value.value if isinstance(value, Enum) else value
    serialized = yaml.dump(
        data,
        Dumper=_NoteDumper,
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=None,
        width=2**31 - 1,
    )
    return f"{DELIMITER}\n{serialized}{DELIMITER}\n"


def render(frontmatter: Frontmatter, body: str) -> str:
    """Return full note text composed of ``frontmatter`` followed by ``body``."""
    return stringify(frontmatter) + body


# ---------------------------------------------------------------------- #
# Best-effort coercion                                                   #
# ---------------------------------------------------------------------- #


def _coerce(raw: Mapping[Any, Any]) -> Frontmatter:
    return Frontmatter(
        para=PARACategory.parse(raw.get("para")),
        tags=_coerce_tags(raw.get("tags")),
        created=_coerce_date(raw.get("created")),
        status=_coerce_enum(NoteStatus, raw.get("status")),
        summary=_coerce_text(raw.get("summary")),
        source=_coerce_enum(NoteSource, raw.get("source")),
        project=_coerce_text(raw.get("project")),
        file=_coerce_text(raw.get("file")),
    )


def _coerce_tags(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [part for part in value.split(",")]
    if isinstance(value, (list, tuple, set)):
        return [str(item) for item in value if item is not None]
    return [str(value)]


def _coerce_date(value: Any) -> Optional[date]:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        try:
            return date.fromisoformat(value.strip()[:10])
        except ValueError:
            return None
    return None


def _coerce_enum(enum_type: Type[_E], value: Any) -> Optional[_E]:
    if value is None:
        return None
    try:
        return enum_type(str(value).strip().lower())
    except ValueError:
        return None


def _coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, (dict, list)):
        return None
    return str(value)


__all__ = ["parse", "stringify", "render", "strip", "split_block", "FIELD_ORDER"]
