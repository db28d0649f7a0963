"""
Failure taxonomy for the note-to-record pipeline.

Every error a single document run can raise derives from ``PipelineError`` so
the batch driver can isolate one document's failure from the rest.
"""
from __future__ import annotations

from typing import Any, List, Optional


class PipelineError(Exception):
    """Base class for per-document pipeline failures."""


class SourceUnavailable(PipelineError):
    """Raw note text could not be obtained (not found, access denied, transport)."""

    def __init__(self, document_id: str, reason: str) -> None:
        super().__init__(f"Document {document_id!r} unavailable: {reason}")
        self.document_id = document_id
        self.reason = reason


class ClassificationFailure(PipelineError):
    """The text-understanding service failed or returned a non-conforming payload."""


class ExtractionFailure(ClassificationFailure):
    """A pipeline stage could not obtain a valid classification."""

    def __init__(self, stage: str, reason: str) -> None:
        super().__init__(f"Stage '{stage}' failed: {reason}")
        self.stage = stage
        self.reason = reason


class ValidationFailure(PipelineError):
    """An assembled record breaks a structural invariant."""

    def __init__(self, message: str, errors: Optional[List[Any]] = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class MissingStageOutput(PipelineError):
    """A required stage produced no result object (programming error, not bad data)."""

    def __init__(self, stage: str) -> None:
        super().__init__(f"No result for required stage '{stage}'")
        self.stage = stage
