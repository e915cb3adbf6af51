"""Two-stage PARA classifier built on :class:`AIService`.

Candidates are classified in chunks with the fast model tier. Results whose
confidence falls below the threshold are classified again, one at a time,
with the precise tier. The model is asked for a JSON array and replies are
parsed leniently (code fences and surrounding prose are tolerated).
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Callable, List, Optional, Sequence, Union

from pydantic import ValidationError

from dotbrain.vault.models import PARACategory

from .client import AIService
from .errors import ClassificationError, ProviderError, ProviderErrorKind
from .models import Candidate, ClassificationResult, FolderContext

LOGGER = logging.getLogger(__name__)

BATCH_EXCERPT_CHARS = 1500
PRECISE_EXCERPT_CHARS = 5000
FAST_STAGE_SHARE = 0.7

ProgressCallback = Callable[[float, str], None]
ClassificationOutcome = Union[ClassificationResult, ProviderError]

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)


class Classifier:
    """Classify candidates into PARA categories and target folders.

    Args:
        service: Request worker used to reach the language model.
        batch_size: Candidates per fast-tier request.
        confidence_threshold: Results below this are re-checked with the precise tier.
    """

    def __init__(
        self,
        service: AIService,
        *,
        batch_size: int = 10,
        confidence_threshold: float = 0.8,
    ) -> None:
        self.service = service
        self.batch_size = max(1, batch_size)
        self.confidence_threshold = confidence_threshold

    async def classify_files(
        self,
        candidates: Sequence[Candidate],
        context: FolderContext,
        on_progress: Optional[ProgressCallback] = None,
    ) -> List[ClassificationOutcome]:
        """Classify ``candidates`` and return one outcome per candidate, in order.

        Args:
            candidates: Files to classify, with their content excerpts.
            context: Project and subfolder hints for the prompt.
            on_progress: Optional callback receiving a fraction in ``[0, 1]``.

        Returns:
            List[ClassificationOutcome]: A result, or the error that prevented one.

        Raises:
            ClassificationError: If every fast-tier request failed.
        """
        if not candidates:
            return []

        report = on_progress or (lambda fraction, status: None)
        chunks = [
            list(candidates[start : start + self.batch_size])
            for start in range(0, len(candidates), self.batch_size)
        ]
        outcomes: List[ClassificationOutcome] = []
        errors: List[ProviderError] = []

        for index, chunk in enumerate(chunks):
            report(
                FAST_STAGE_SHARE * index / len(chunks),
                f"Classifying batch {index + 1}/{len(chunks)}",
            )
            try:
                reply = await self.service.send_fast(self._batch_prompt(chunk, context))
                outcomes.extend(self._parse_batch(reply, chunk))
            except ProviderError as exc:
                LOGGER.warning("Batch %d failed: %s", index + 1, exc)
                errors.append(exc)
                outcomes.extend(exc for _ in chunk)

        if len(errors) == len(chunks):
            raise ClassificationError(
                f"Classification failed for all {len(candidates)} file(s): {errors[0]}",
                cause=errors[0],
            )

        uncertain = [
            position
            for position, outcome in enumerate(outcomes)
            if isinstance(outcome, ClassificationResult)
            and outcome.confidence < self.confidence_threshold
        ]
        for step, position in enumerate(uncertain):
            candidate = candidates[position]
            report(
                FAST_STAGE_SHARE + (1 - FAST_STAGE_SHARE) * step / len(uncertain),
                f"Re-checking {candidate.file_name}",
            )
            refined = await self._refine(candidate, context)
            if refined is not None:
                outcomes[position] = refined

        report(1.0, "Classification complete")
        return outcomes

    async def _refine(
        self, candidate: Candidate, context: FolderContext
    ) -> Optional[ClassificationResult]:
        try:
            reply = await self.service.send_precise(self._single_prompt(candidate, context))
            outcome = self._parse_batch(reply, [candidate])[0]
        except ProviderError as exc:
            LOGGER.info("Keeping fast result for %s: %s", candidate.file_name, exc)
            return None
        if isinstance(outcome, ProviderError):
            LOGGER.info("Keeping fast result for %s: %s", candidate.file_name, outcome)
            return None
        return outcome

    # ------------------------------------------------------------------ #
    # Prompt construction                                                #
    # ------------------------------------------------------------------ #

    def _batch_prompt(self, chunk: Sequence[Candidate], context: FolderContext) -> str:
        entries = "\n\n".join(
            f"[{index}] {candidate.file_name}\n{candidate.content[:BATCH_EXCERPT_CHARS]}"
            for index, candidate in enumerate(chunk)
        )
        return _PROMPT_TEMPLATE.format(
            instructions=_context_block(context),
            count=len(chunk),
            entries=entries,
        )

    def _single_prompt(self, candidate: Candidate, context: FolderContext) -> str:
        entry = f"[0] {candidate.file_name}\n{candidate.content[:PRECISE_EXCERPT_CHARS]}"
        return _PROMPT_TEMPLATE.format(
            instructions=_context_block(context), count=1, entries=entry
        )

    # ------------------------------------------------------------------ #
    # Reply parsing                                                      #
    # ------------------------------------------------------------------ #

    def _parse_batch(
        self, reply: str, chunk: Sequence[Candidate]
    ) -> List[ClassificationOutcome]:
        items = parse_json_array(reply)
        if items is None:
            raise ProviderError(
                ProviderErrorKind.INVALID_RESPONSE,
                self.service.current_provider.value,
                "reply is not a JSON array",
            )

        by_index: dict[int, Any] = {}
        for position, item in enumerate(items):
            index = item.get("index", position) if isinstance(item, dict) else position
            if isinstance(index, int) and index not in by_index:
                by_index[index] = item

        outcomes: List[ClassificationOutcome] = []
        for index, candidate in enumerate(chunk):
            result = _to_result(by_index.get(index))
            if result is None:
                outcomes.append(
                    ProviderError(
                        ProviderErrorKind.INVALID_RESPONSE,
                        self.service.current_provider.value,
                        f"no usable classification for {candidate.file_name}",
                    )
                )
            else:
                outcomes.append(result)
        return outcomes


def parse_json_array(reply: str) -> Optional[list[Any]]:
    """Extract the first JSON array from a model reply, or ``None``."""
    text = reply.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()
    start, end = text.find("["), text.rfind("]")
    if start == -1 or end <= start:
        return None
    try:
        data = json.loads(text[start : end + 1])
    except json.JSONDecodeError:
        return None
    return data if isinstance(data, list) else None


def _to_result(item: Any) -> Optional[ClassificationResult]:
    if not isinstance(item, dict):
        return None
    para = PARACategory.parse(item.get("para"))
    if para is None:
        return None
    tags = item.get("tags") or []
    if not isinstance(tags, list):
        tags = [tags]
    project = item.get("project")
    try:
        return ClassificationResult(
            para=para,
            tags=[str(tag).strip() for tag in tags if str(tag).strip()][:5],
            target_folder=str(item.get("targetFolder") or item.get("target_folder") or "").strip(),
            summary=str(item.get("summary") or "").strip(),
            project=str(project).strip() if project else None,
            confidence=float(item.get("confidence", 0.0) or 0.0),
        )
    except (TypeError, ValueError, ValidationError):
        return None


def _context_block(context: FolderContext) -> str:
    projects = ", ".join(context.project_names) or "(none)"
    lines = [f"Active projects: {projects}"]
    if context.project_context:
        lines.append(f"Project details:\n{context.project_context}")
    if context.subfolder_context:
        lines.append(f"Existing folders:\n{context.subfolder_context}")
    return "\n".join(lines)


_PROMPT_TEMPLATE = """You organize files into a PARA vault.

Categories:
- project: work with a goal and a deadline; must name one of the active projects
- area: ongoing responsibility without an end date
- resource: reference material and topics of interest
- archive: completed or inactive material

{instructions}

Prefer an existing folder for targetFolder when one fits.

Classify the {count} file(s) below. Reply with ONLY a JSON array, one object per file:
[{{"index": 0, "para": "project|area|resource|archive", "tags": ["up to 5 tags"],
"targetFolder": "folder name", "summary": "one sentence", "project": "project name or null",
"confidence": 0.0}}]

Files:
{entries}
"""


__all__ = ["Classifier", "ClassificationOutcome", "ProgressCallback", "parse_json_array"]
