from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, Mapping, Optional
from uuid import uuid4

from pydantic import ValidationError

from ..core.errors import MissingStageOutput, ValidationFailure
from ..schemas.company import CompanyRecord
from .sections import NoteDocument
from .stages.base import ExtractionResult

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def build_doc_url(template: Optional[str], document_id: str) -> Optional[str]:
    if not template or not document_id:
        return None
    return template.format(doc_id=document_id)


def assemble_record(
    note: NoteDocument,
    results: Mapping[str, ExtractionResult],
    required_stages: Iterable[str],
    *,
    id_factory: Callable[[], Any] = uuid4,
    clock: Callable[[], datetime] = utcnow,
    doc_url_template: Optional[str] = None,
) -> CompanyRecord:
    """
    Merge stage outputs with identity fields into one CompanyRecord.

    Every required stage must have produced a result object (its values may all
    be null). Stage outputs must not overlap. Structural invariants are checked
    by the model; violations raise ValidationFailure and are never repaired.
    """
    merged: Dict[str, Any] = {}
    for stage_name in required_stages:
        result = results.get(stage_name)
        if result is None:
            raise MissingStageOutput(stage_name)
        overlap = set(merged) & set(result.values)
        if overlap:
            raise ValueError(
                f"Stage '{stage_name}' produced fields owned by another stage: {sorted(overlap)}"
            )
        merged.update(result.values)

    data = {
        **merged,
        "id": str(id_factory()),
        "company_name": note.company_name,
        "website": note.website,
        "doc_url": build_doc_url(doc_url_template, note.document_id),
        "date_created": clock(),
    }

    try:
        record = CompanyRecord.model_validate(data)
    except ValidationError as e:
        errors = e.errors(include_url=False)
        logger.warning(
            "Assembled record failed validation (%d errors)",
            len(errors),
            extra={"doc_id": note.document_id},
        )
        raise ValidationFailure(
            f"Record for document {note.document_id!r} is invalid: {e}",
            errors=errors,
        ) from e

    logger.info(
        "Assembled record %s",
        record.id,
        extra={"doc_id": note.document_id, "record_id": record.id},
    )
    return record
