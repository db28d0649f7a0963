from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional
from uuid import uuid4

from ..core.errors import PipelineError
from .pipeline import CompanyParsePipeline
from .sink import RecordSink

logger = logging.getLogger(__name__)


@dataclass
class BatchReport:
    batch_id: str
    processed: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    errors: Dict[str, str] = field(default_factory=dict)

    @property
    def failed(self) -> List[str]:
        return list(self.errors)

    def summary(self) -> dict:
        return {
            "batch_id": self.batch_id,
            "processed": len(self.processed),
            "skipped": len(self.skipped),
            "failed": len(self.errors),
            "errors": dict(self.errors),
        }


def run_batch(
    pipeline: CompanyParsePipeline,
    document_ids: Iterable[str],
    sink: RecordSink,
    batch_id: Optional[str] = None,
) -> BatchReport:
    """
    Parse and store each document independently.

    One document's failure is recorded and never stops the batch. Records
    without a company name are not stored.
    """
    report = BatchReport(batch_id=batch_id or str(uuid4()))

    for document_id in document_ids:
        log_extra = {"doc_id": document_id, "batch_id": report.batch_id}
        try:
            record = pipeline.parse(document_id)
        except PipelineError as e:
            logger.warning("Document failed: %s", e, extra=log_extra)
            report.errors[document_id] = str(e)
            continue
        except Exception as e:
            logger.exception("Unexpected error parsing document", extra=log_extra)
            report.errors[document_id] = f"{type(e).__name__}: {e}"
            continue

        if not record.company_name:
            logger.info("Skipping record without a company name", extra=log_extra)
            report.skipped.append(document_id)
            continue

        try:
            sink.upsert(record)
        except Exception as e:
            logger.exception("Failed to store record", extra=log_extra)
            report.errors[document_id] = f"{type(e).__name__}: {e}"
            continue

        report.processed.append(document_id)

    logger.info(
        "Batch finished: %d processed, %d skipped, %d failed",
        len(report.processed),
        len(report.skipped),
        len(report.errors),
        extra={"batch_id": report.batch_id},
    )
    costs = pipeline.cost_summary()
    if costs:
        logger.info(
            "Batch LLM cost: $%.4f",
            costs["total_cost_usd"],
            extra={"batch_id": report.batch_id, "run_id": costs["run_id"]},
        )
    return report
