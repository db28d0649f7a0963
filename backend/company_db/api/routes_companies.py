import logging
from typing import List, Optional

from celery.result import AsyncResult
from fastapi import APIRouter, Depends, HTTPException, Security
from fastapi.security.api_key import APIKeyHeader

from ..core.celery_app import celery_app
from ..core.config import get_settings
from ..core.db import get_session_factory
from ..schemas.company import (
    CompanyNeedingUpdateOut,
    CompanyRecord,
    DatabaseSummaryOut,
    ParseJobOut,
    ParseRequest,
)
from ..services import queries
from ..services.sink import RecordSink, SqlRecordSink

router = APIRouter(tags=["companies"])

settings = get_settings()
api_key_header = APIKeyHeader(name="X-API-Key", auto_error=False)
logger = logging.getLogger(__name__)


def verify_api_key(api_key: str | None = Security(api_key_header)) -> None:
    """
    Simple header-based API key authentication.

    - In dev, if API_AUTH_KEY is not set, auth is skipped.
    - Otherwise, require X-API-Key == API_AUTH_KEY.
    """
    expected = settings.API_AUTH_KEY

    if settings.ENV == "dev" and not expected:
        return

    if not expected:
        raise HTTPException(status_code=401, detail="API key not configured")

    if api_key != expected:
        raise HTTPException(status_code=401, detail="Invalid API key")


def get_record_sink() -> RecordSink:
    return SqlRecordSink(get_session_factory())


@router.post("/companies/parse", response_model=ParseJobOut, status_code=202)
def enqueue_parse(
    payload: ParseRequest,
    _: None = Depends(verify_api_key),
):
    result = celery_app.send_task(
        "company_db.services.tasks.parse_company_document",
        args=[payload.document_id],
        queue="parsing",
    )
    logger.info(
        "Parse job queued",
        extra={"doc_id": payload.document_id, "batch_id": result.id},
    )
    return ParseJobOut(task_id=result.id, document_id=payload.document_id)


@router.get("/companies/jobs/{task_id}")
def get_parse_job(
    task_id: str,
    _: None = Depends(verify_api_key),
):
    result = AsyncResult(task_id, app=celery_app)
    body = {"task_id": task_id, "status": result.status}
    if result.successful():
        body["report"] = result.result
    elif result.failed():
        body["error"] = str(result.result)
    return body


@router.get("/companies", response_model=List[CompanyRecord])
def list_companies(
    name: Optional[str] = None,
    location: Optional[str] = None,
    year_founded_min: Optional[int] = None,
    year_founded_max: Optional[int] = None,
    team_size_min: Optional[int] = None,
    team_size_max: Optional[int] = None,
    min_acv: Optional[float] = None,
    max_acv: Optional[float] = None,
    min_arr: Optional[float] = None,
    max_arr: Optional[float] = None,
    has_valuation: Optional[bool] = None,
    has_complex_acv: Optional[bool] = None,
    sink: RecordSink = Depends(get_record_sink),
    _: None = Depends(verify_api_key),
):
    return queries.search_companies(
        sink.all_records(),
        name=name,
        location=location,
        year_founded_min=year_founded_min,
        year_founded_max=year_founded_max,
        team_size_min=team_size_min,
        team_size_max=team_size_max,
        min_acv=min_acv,
        max_acv=max_acv,
        min_arr=min_arr,
        max_arr=max_arr,
        has_valuation=has_valuation,
        has_complex_acv=has_complex_acv,
    )


@router.get("/companies/summary", response_model=DatabaseSummaryOut)
def get_summary(
    sink: RecordSink = Depends(get_record_sink),
    _: None = Depends(verify_api_key),
):
    return queries.database_summary(sink.all_records())


@router.get("/companies/needing-updates", response_model=List[CompanyNeedingUpdateOut])
def get_companies_needing_updates(
    sink: RecordSink = Depends(get_record_sink),
    _: None = Depends(verify_api_key),
):
    return queries.companies_needing_updates(sink.all_records())


@router.get("/companies/{record_id}", response_model=CompanyRecord)
def get_company(
    record_id: str,
    sink: RecordSink = Depends(get_record_sink),
    _: None = Depends(verify_api_key),
):
    record = sink.get_record(record_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Company not found")
    return record
