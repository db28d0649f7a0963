# backend/company_db/services/tasks.py

from __future__ import annotations

import logging
from typing import List

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import get_session_factory
from .batch import run_batch
from .pipeline import build_pipeline
from .sink import SqlRecordSink

logger = logging.getLogger(__name__)


def _run(document_ids: List[str], batch_id: str) -> dict:
    settings = get_settings()
    pipeline = build_pipeline(settings, run_id=batch_id)
    sink = SqlRecordSink(get_session_factory())
    report = run_batch(pipeline, document_ids, sink, batch_id=batch_id)
    return report.summary()


@celery_app.task(name="company_db.services.tasks.parse_company_document", bind=True, queue="parsing")
def parse_company_document(self, document_id: str) -> dict:
    logger.info(
        "Parsing document",
        extra={"doc_id": document_id, "batch_id": self.request.id},
    )
    return _run([document_id], batch_id=self.request.id)


@celery_app.task(name="company_db.services.tasks.parse_company_documents", bind=True, queue="parsing")
def parse_company_documents(self, document_ids: List[str]) -> dict:
    logger.info(
        "Parsing %d documents",
        len(document_ids),
        extra={"batch_id": self.request.id},
    )
    return _run(list(document_ids), batch_id=self.request.id)
