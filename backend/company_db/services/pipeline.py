# backend/company_db/services/pipeline.py

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Callable, Optional, Sequence
from uuid import uuid4

from ..core.config import Settings
from ..schemas.company import CompanyRecord
from .assembler import utcnow, assemble_record
from .classifier import OpenAIClassifier, TextClassifier
from .llm_costs import LLMCostTracker
from .sections import NoteDocument
from .sources import DocumentSource, build_source
from .stages import ExtractionStage, StageRunner, default_stages

logger = logging.getLogger(__name__)


class CompanyParsePipeline:
    """
    Document-to-record normalization for one note at a time.

    source text -> labeled sections -> independent extraction stages -> record

    Any stage failure aborts the run; no partial record is produced. Failures
    surface as PipelineError subclasses for the caller to handle.
    """

    def __init__(
        self,
        settings: Settings,
        classifier: TextClassifier,
        source: DocumentSource,
        stages: Optional[Sequence[ExtractionStage]] = None,
        id_factory: Optional[Callable[[], Any]] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.classifier = classifier
        self.source = source
        self.stages = list(stages) if stages is not None else default_stages(settings)
        self.runner = StageRunner(self.stages, concurrent=settings.PIPELINE_CONCURRENT_STAGES)
        self.doc_url_template = settings.DOC_URL_TEMPLATE
        self.id_factory = id_factory or uuid4
        self.clock = clock or utcnow

    def parse(self, document_id: str) -> CompanyRecord:
        text = self.source.get_raw_text(document_id)
        return self.parse_text(document_id, text)

    def parse_text(self, document_id: str, text: str) -> CompanyRecord:
        note = NoteDocument.from_text(document_id, text)
        if not note.has_template:
            logger.info(
                "No template labels found; stages will read the full text",
                extra={"doc_id": document_id},
            )

        results = self.runner.run(note, self.classifier)
        return assemble_record(
            note,
            results,
            [stage.name for stage in self.stages],
            id_factory=self.id_factory,
            clock=self.clock,
            doc_url_template=self.doc_url_template,
        )

    def cost_summary(self) -> Optional[dict]:
        tracker = getattr(self.classifier, "cost_tracker", None)
        return tracker.summarize() if tracker is not None else None


def build_pipeline(settings: Settings, run_id: Optional[str] = None) -> CompanyParsePipeline:
    """
    Wire the production collaborators: OpenAI-compatible classifier with cost
    tracking, and a directory or Google Docs source depending on settings.
    """
    tracker = LLMCostTracker(run_id or str(uuid4()))
    return CompanyParsePipeline(
        settings,
        classifier=OpenAIClassifier(settings, cost_tracker=tracker),
        source=build_source(settings),
    )
