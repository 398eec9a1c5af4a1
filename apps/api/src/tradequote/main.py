import asyncio
from datetime import date, datetime, timezone
from decimal import Decimal
import re
from typing import Annotated, Any

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy import select
from sqlalchemy.orm import Session, joinedload

from tradequote.config import get_settings
from tradequote.db import get_engine
from tradequote.models import JobRecord, QuoteRecord
from tradequote.services.dashboard import QuoteSummary, compute_dashboard_stats
from tradequote.services.pipeline import (
    Job,
    JobPipelineController,
    JobStatus,
    JobStore,
    PipelineBoard,
    RestJobStore,
    SqlJobStore,
    format_currency,
    format_local_date,
)
from tradequote.services.pipeline.sql_store import job_from_record
from tradequote.services.quotes import (
    CENTS,
    DEFAULT_TERMS,
    LineItem,
    QuoteStatus,
    compute_quote_totals,
    default_valid_until,
    generate_quote_number,
)

app = FastAPI(title="TradeQuote Pipeline API", version="0.1.0")


class TransitionRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(min_length=1)
    status: JobStatus


class LineItemRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    description: str = ""
    quantity: Decimal = Field(default=Decimal("1"), ge=0)
    rate: Decimal = Field(default=Decimal("0"), ge=0)


class CreateQuoteRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    job_id: str = Field(min_length=1)
    line_items: list[LineItemRequest] = Field(min_length=1)
    notes: str | None = None
    terms: str | None = None
    tax_rate: Decimal | None = Field(default=None, ge=0)
    valid_until: date | None = None


class QuoteStatusRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: QuoteStatus


@app.on_event("startup")
def startup() -> None:
    get_engine()


@app.on_event("shutdown")
async def shutdown() -> None:
    controller = getattr(app.state, "pipeline_controller", None)
    if controller is not None:
        await controller.close()


def get_job_store() -> JobStore:
    settings = get_settings()
    if settings.job_store_backend == "rest":
        return RestJobStore(
            base_url=settings.backend_rest_url,
            api_key=settings.backend_api_key,
            timeout_seconds=settings.backend_timeout_seconds,
        )
    return SqlJobStore(get_engine())


async def get_pipeline_controller(
    request: Request,
    store: Annotated[JobStore, Depends(get_job_store)],
) -> JobPipelineController:
    controller = getattr(request.app.state, "pipeline_controller", None)
    if controller is None:
        controller = JobPipelineController(
            store,
            update_timeout_seconds=get_settings().pipeline_update_timeout_seconds,
        )
        request.app.state.pipeline_controller = controller

    if not controller.loaded:
        await controller.load()
    return controller


def _to_iso(value: date | datetime | None) -> str | None:
    if value is None:
        return None
    return value.isoformat()


def _money(value: Decimal | None) -> str | None:
    if value is None:
        return None
    return str(Decimal(value).quantize(CENTS))


def _job_summary(job: Job) -> dict[str, Any]:
    return {
        "id": job.id,
        "title": job.title,
        "status": job.status.value,
        "total_amount": _money(job.total_amount),
        "total_display": (
            format_currency(job.total_amount) if job.total_amount is not None else None
        ),
        "scheduled_date": _to_iso(job.scheduled_date),
        "scheduled_display": format_local_date(job.scheduled_date),
        "client_id": job.client_id,
        "client_name": job.client_name,
    }


def _board_payload(board: PipelineBoard) -> dict[str, Any]:
    return {
        "columns": [
            {
                "status": column.status.value,
                "title": column.title,
                "count": column.count,
                "jobs": [_job_summary(job) for job in column.jobs],
            }
            for column in board.columns
        ],
        "total_jobs": board.total_jobs,
        "total_value": _money(board.total_value),
        "total_value_display": format_currency(board.total_value),
    }


def _quote_detail(quote: QuoteRecord) -> dict[str, Any]:
    job = quote.job
    client = job.client if job is not None else None
    return {
        "id": quote.id,
        "job_id": quote.job_id,
        "quote_number": quote.quote_number,
        "line_items": quote.line_items,
        "subtotal": _money(quote.subtotal),
        "tax": _money(quote.tax),
        "total": _money(quote.total),
        "total_display": format_currency(quote.total),
        "notes": quote.notes,
        "terms": quote.terms,
        "valid_until": _to_iso(quote.valid_until),
        "status": quote.status,
        "created_at": _to_iso(quote.created_at),
        "job": {
            "title": job.title if job is not None else None,
            "client": None
            if client is None
            else {
                "name": client.name,
                "email": client.email,
                "phone": client.phone,
                "address": client.address,
            },
        },
    }


def _extract_numeric_suffix(value: str) -> int | None:
    match = re.search(r"(\d+)$", value)
    if match is None:
        return None
    return int(match.group(1))


def _next_quote_id(session: Session) -> str:
    next_id = 1
    for existing_id in session.scalars(select(QuoteRecord.id)).all():
        parsed = _extract_numeric_suffix(str(existing_id))
        if parsed is None:
            continue
        next_id = max(next_id, parsed + 1)
    return str(next_id)


def _load_quote(session: Session, quote_id: str) -> QuoteRecord | None:
    return session.scalar(
        select(QuoteRecord)
        .options(joinedload(QuoteRecord.job).joinedload(JobRecord.client))
        .where(QuoteRecord.id == quote_id)
    )


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}


@app.get("/jobs")
def list_jobs(status: JobStatus | None = Query(default=None)) -> list[dict[str, Any]]:
    with Session(get_engine()) as session:
        stmt = select(JobRecord).options(joinedload(JobRecord.client))
        if status is not None:
            stmt = stmt.where(JobRecord.status == status.value)

        records = session.scalars(
            stmt.order_by(JobRecord.created_at.desc(), JobRecord.id.desc())
        ).all()
        jobs = [job_from_record(record) for record in records]

    return [_job_summary(job) for job in jobs]


@app.get("/jobs/{job_id}")
def get_job(job_id: str) -> dict[str, Any]:
    with Session(get_engine()) as session:
        record = session.scalar(
            select(JobRecord)
            .options(joinedload(JobRecord.client))
            .where(JobRecord.id == job_id)
        )
        if record is None:
            raise HTTPException(status_code=404, detail="job not found")
        job = job_from_record(record)

    detail = _job_summary(job)
    detail["created_at"] = _to_iso(job.created_at)
    return detail


@app.get("/pipeline")
async def get_pipeline(
    controller: Annotated[JobPipelineController, Depends(get_pipeline_controller)],
) -> dict[str, Any]:
    return _board_payload(controller.board())


@app.post("/pipeline/reload")
async def reload_pipeline(
    controller: Annotated[JobPipelineController, Depends(get_pipeline_controller)],
) -> dict[str, Any]:
    await controller.load()
    return _board_payload(controller.board())


@app.post("/pipeline/transitions")
async def request_transition(
    request: TransitionRequest,
    controller: Annotated[JobPipelineController, Depends(get_pipeline_controller)],
    wait: bool = Query(default=False),
) -> JSONResponse:
    task = controller.request_transition(request.job_id, request.status)
    if task is not None and wait:
        # shielded so a dropped client does not cancel the store update
        await asyncio.shield(task)

    job = controller.get_job(request.job_id)
    return JSONResponse(
        status_code=202,
        content={
            "job_id": request.job_id,
            "status": job.status.value if job is not None else None,
            "accepted": task is not None,
        },
    )


@app.get("/dashboard/stats")
def dashboard_stats() -> dict[str, Any]:
    with Session(get_engine()) as session:
        jobs = [
            job_from_record(record)
            for record in session.scalars(
                select(JobRecord).options(joinedload(JobRecord.client))
            ).all()
        ]
        quotes = [
            QuoteSummary(
                total=quote.total,
                status=quote.status,
                created_at=quote.created_at,
                valid_until=quote.valid_until,
            )
            for quote in session.scalars(select(QuoteRecord)).all()
        ]

    stats = compute_dashboard_stats(jobs, quotes, now=datetime.now(timezone.utc))
    return {
        "revenue_this_month": _money(stats.revenue_this_month),
        "revenue_this_month_display": format_currency(stats.revenue_this_month),
        "revenue_last_month": _money(stats.revenue_last_month),
        "revenue_last_month_display": format_currency(stats.revenue_last_month),
        "revenue_change_pct": stats.revenue_change_pct,
        "jobs_in_progress": stats.jobs_in_progress,
        "jobs_today": stats.jobs_today,
        "unscheduled_jobs": stats.unscheduled_jobs,
        "quotes_expiring": stats.quotes_expiring,
    }


@app.post("/quotes")
def create_quote(request: CreateQuoteRequest) -> JSONResponse:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    line_items = [
        LineItem(description=item.description, quantity=item.quantity, rate=item.rate)
        for item in request.line_items
    ]
    tax_rate = request.tax_rate
    if tax_rate is None:
        tax_rate = Decimal(str(settings.quote_default_tax_rate))
    totals = compute_quote_totals(line_items, tax_rate)

    with Session(get_engine()) as session:
        if session.get(JobRecord, request.job_id) is None:
            raise HTTPException(status_code=404, detail="job not found")

        quote = QuoteRecord(
            id=_next_quote_id(session),
            job_id=request.job_id,
            quote_number=generate_quote_number(now),
            line_items=[item.to_json() for item in line_items],
            subtotal=totals.subtotal,
            tax=totals.tax,
            total=totals.total,
            notes=request.notes,
            terms=request.terms if request.terms is not None else DEFAULT_TERMS,
            valid_until=request.valid_until
            or default_valid_until(now.date(), settings.quote_valid_days),
            status=QuoteStatus.DRAFT.value,
        )
        session.add(quote)
        session.commit()
        payload = _quote_detail(quote)

    return JSONResponse(status_code=201, content=payload)


@app.get("/quotes/{quote_id}")
def get_quote(quote_id: str) -> dict[str, Any]:
    with Session(get_engine()) as session:
        quote = _load_quote(session, quote_id)
        if quote is None:
            raise HTTPException(status_code=404, detail="quote not found")
        return _quote_detail(quote)


@app.post("/quotes/{quote_id}/status")
def update_quote_status(quote_id: str, request: QuoteStatusRequest) -> dict[str, Any]:
    with Session(get_engine()) as session:
        quote = _load_quote(session, quote_id)
        if quote is None:
            raise HTTPException(status_code=404, detail="quote not found")
        quote.status = request.status.value
        session.commit()
        return _quote_detail(quote)


def run() -> None:
    import uvicorn

    uvicorn.run("tradequote.main:app", host="0.0.0.0", port=8000, reload=False)


if __name__ == "__main__":
    run()
