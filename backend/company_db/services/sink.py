from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import timezone
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from ..models.company_record import CompanyRecordRow
from ..schemas.company import CompanyRecord
from .queries import get_company_by_id

logger = logging.getLogger(__name__)


def _to_row(record: CompanyRecord) -> CompanyRecordRow:
    data = record.model_dump()
    created = data["date_created"]
    if created.tzinfo is not None:
        data["date_created"] = created.astimezone(timezone.utc)
    return CompanyRecordRow(**data)


def _to_record(row: CompanyRecordRow) -> CompanyRecord:
    record = CompanyRecord.model_validate(row)
    if record.date_created.tzinfo is None:
        # SQLite drops the offset; stored timestamps are UTC
        record = record.model_copy(
            update={"date_created": record.date_created.replace(tzinfo=timezone.utc)}
        )
    return record


class RecordSink(ABC):
    """Stores records keyed by ``id``; writing the same record twice is a no-op."""

    @abstractmethod
    def upsert(self, record: CompanyRecord) -> None:
        ...

    @abstractmethod
    def all_records(self) -> List[CompanyRecord]:
        ...

    def get_record(self, record_id: str) -> Optional[CompanyRecord]:
        return get_company_by_id(self.all_records(), record_id)


class SqlRecordSink(RecordSink):
    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def upsert(self, record: CompanyRecord) -> None:
        session = self._session_factory()
        try:
            session.merge(_to_row(record))
            session.commit()
        except SQLAlchemyError:
            session.rollback()
            logger.exception(
                "Failed to upsert record %s",
                record.id,
                extra={"record_id": record.id},
            )
            raise
        finally:
            session.close()

    def all_records(self) -> List[CompanyRecord]:
        session = self._session_factory()
        try:
            rows = (
                session.query(CompanyRecordRow)
                .order_by(CompanyRecordRow.date_created.asc())
                .all()
            )
            return [_to_record(row) for row in rows]
        finally:
            session.close()

    def get_record(self, record_id: str) -> Optional[CompanyRecord]:
        session = self._session_factory()
        try:
            row = session.get(CompanyRecordRow, record_id)
            return _to_record(row) if row is not None else None
        finally:
            session.close()
