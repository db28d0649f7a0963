from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Tuple

from ...core.errors import ClassificationFailure, ExtractionFailure
from ...schemas.fields import FieldSchema
from ..classifier import TextClassifier
from ..llm import truncate_to_tokens
from ..sections import NoteDocument

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtractionResult:
    """Typed output of one stage: every declared output field, possibly None."""

    stage: str
    values: Mapping[str, Any] = field(default_factory=dict)
    # False when the stage short-circuited on empty input
    classified: bool = True


class ExtractionStage(ABC):
    """
    One independently runnable extraction step.

    A stage pairs a closed field schema (what the classifier is asked for) with
    a prompt builder and an interpreter that turns the classifier's answer into
    the record fields the stage owns (``output_fields``).
    """

    name: str
    fields: Tuple[FieldSchema, ...]
    output_fields: Tuple[str, ...]
    # Token cap for the whole note when it has no template sections
    max_document_tokens: int = 12000

    def source_text(self, note: NoteDocument) -> str:
        """Text this stage analyses; blank text skips the classifier call."""
        return note.text

    def note_text(self, note: NoteDocument) -> str:
        return truncate_to_tokens(note.text, self.max_document_tokens)

    @abstractmethod
    def build_prompt(self, note: NoteDocument) -> str:
        ...

    def interpret(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return {name: payload.get(name) for name in self.output_fields}

    def empty_values(self) -> Dict[str, Any]:
        return {name: None for name in self.output_fields}

    def run(self, note: NoteDocument, classifier: TextClassifier) -> ExtractionResult:
        if not (self.source_text(note) or "").strip():
            logger.info(
                "No source text for stage '%s'; returning nulls",
                self.name,
                extra={"doc_id": note.document_id, "stage": self.name},
            )
            return ExtractionResult(self.name, self.empty_values(), classified=False)

        try:
            payload = classifier.classify(self.build_prompt(note), self.fields, self.name)
        except ClassificationFailure as e:
            raise ExtractionFailure(self.name, str(e)) from e

        values = self.interpret(payload)
        if set(values) != set(self.output_fields):
            raise ExtractionFailure(
                self.name,
                f"interpreter produced {sorted(values)}, expected {sorted(self.output_fields)}",
            )
        return ExtractionResult(self.name, values)
