from __future__ import annotations

import asyncio
import logging
from typing import Dict, List, Sequence

from ...core.config import Settings
from ..classifier import TextClassifier
from ..sections import NoteDocument
from .base import ExtractionResult, ExtractionStage
from .burn import MonthlyBurnStage
from .churn import ChurnStage
from .segmentation import acv_stage, customer_count_stage
from .simple_fields import SimpleFieldsStage
from .valuation import ValuationStage

logger = logging.getLogger(__name__)

__all__ = [
    "ExtractionResult",
    "ExtractionStage",
    "StageRunner",
    "default_stages",
]


def default_stages(settings: Settings) -> List[ExtractionStage]:
    """
    The stage registry. Every record field except the identity fields is owned
    by exactly one of these stages.
    """
    stages: List[ExtractionStage] = [
        SimpleFieldsStage(max_document_tokens=settings.MAX_DOCUMENT_TOKENS),
        acv_stage(),
        customer_count_stage(),
        ChurnStage(),
        MonthlyBurnStage(low_burn_sentinel=settings.LOW_BURN_SENTINEL),
        ValuationStage(),
    ]
    for stage in stages:
        stage.max_document_tokens = settings.MAX_DOCUMENT_TOKENS
    return stages


class StageRunner:
    """
    Executes a set of stages against one note.

    - Stages are independent; concurrent runs use asyncio with each stage's
      blocking classifier call in a worker thread.
    - The first stage failure propagates and no results are returned.
    - Returns {stage_name: ExtractionResult}.
    """

    def __init__(self, stages: Sequence[ExtractionStage], concurrent: bool = True) -> None:
        names = [s.name for s in stages]
        if len(set(names)) != len(names):
            raise ValueError(f"Duplicate stage names: {names}")
        self.stages = list(stages)
        self.concurrent = concurrent

    def _run_sequential(
        self, note: NoteDocument, classifier: TextClassifier
    ) -> Dict[str, ExtractionResult]:
        return {stage.name: stage.run(note, classifier) for stage in self.stages}

    def run(self, note: NoteDocument, classifier: TextClassifier) -> Dict[str, ExtractionResult]:
        if not self.concurrent or len(self.stages) <= 1:
            return self._run_sequential(note, classifier)

        try:
            asyncio.get_running_loop()
        except RuntimeError:
            pass
        else:
            # Called from inside an event loop (e.g. an async route); don't nest one
            logger.debug(
                "Event loop already running; running stages sequentially",
                extra={"doc_id": note.document_id},
            )
            return self._run_sequential(note, classifier)

        async def _run_all() -> Dict[str, ExtractionResult]:
            results = await asyncio.gather(
                *(asyncio.to_thread(stage.run, note, classifier) for stage in self.stages)
            )
            return {res.stage: res for res in results}

        return asyncio.run(_run_all())
