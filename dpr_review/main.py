import json
import logging
import math
import os
from contextlib import asynccontextmanager
from typing import Optional

logger = logging.getLogger(__name__)

from dotenv import load_dotenv
load_dotenv()

from fastapi import FastAPI, File, Form, HTTPException, Request, UploadFile
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import JSONResponse
from slowapi import Limiter
from slowapi.errors import RateLimitExceeded
from slowapi.util import get_remote_address
from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import undefer

from .assessor import assess
from .database import Base, SessionLocal, engine
from .extractor import ALLOWED_TYPES, text_for_assessment
from .models import DPR, Assessment
from .schemas import (
    AnalyzeRequest,
    AnalyzeResponse,
    AssessmentOut,
    AssessmentResult,
    DashboardStats,
    DecisionRequest,
    DPROut,
)

MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(50 * 1024 * 1024)))
STATUSES = ("pending", "analyzing", "reviewed", "approved", "rejected")
RISK_LEVELS = ("low", "medium", "high")

# --- Rate limiting ---
RATE_LIMIT_PER_IP = os.getenv("RATE_LIMIT_PER_IP", "20/hour")

limiter = Limiter(key_func=get_remote_address)


@asynccontextmanager
async def lifespan(app: FastAPI):
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield


app = FastAPI(title="DPR Review", lifespan=lifespan)
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse(
        {"detail": "Rate limit exceeded. Please slow down and try again later."},
        status_code=429,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _assessment_out(row: Assessment) -> AssessmentOut:
    return AssessmentOut(
        id=row.id,
        dpr_id=row.dpr_id,
        created_at=row.created_at,
        updated_at=row.updated_at,
        quality_score=row.quality_score,
        delay_risk=row.delay_risk,
        cost_overrun_risk=row.cost_overrun_risk,
        implementation_risk=row.implementation_risk,
        missing_sections=json.loads(row.missing_sections),
        weak_sections=json.loads(row.weak_sections),
        explanation=row.explanation,
        recommendation=row.recommendation,
        final_decision=row.final_decision,
        reviewer_comments=row.reviewer_comments,
    )


def _dpr_out(dpr: DPR) -> DPROut:
    latest = dpr.latest_assessment
    return DPROut(
        id=dpr.id,
        created_at=dpr.created_at,
        updated_at=dpr.updated_at,
        title=dpr.title,
        project_name=dpr.project_name,
        description=dpr.description,
        file_name=dpr.file_name,
        file_type=dpr.file_type,
        status=dpr.status,
        used_placeholder=dpr.used_placeholder,
        latest_assessment=_assessment_out(latest) if latest else None,
    )


async def _get_dpr(session: AsyncSession, dpr_id: str, **kwargs) -> DPR:
    dpr = await session.get(DPR, dpr_id, **kwargs)
    if not dpr:
        raise HTTPException(status_code=404, detail="DPR not found")
    return dpr


async def _run_analysis(
    session: AsyncSession, dpr: DPR
) -> tuple[Assessment, AssessmentResult]:
    """Score a DPR and store the result as its newest assessment."""
    dpr.status = "analyzing"
    await session.commit()

    resolved = await run_in_threadpool(
        text_for_assessment,
        dpr.title,
        dpr.extracted_text,
        dpr.file_data,
        dpr.file_type,
    )
    if resolved.fresh:
        dpr.extracted_text = resolved.text
    dpr.used_placeholder = resolved.placeholder

    result = assess(resolved.text)

    row = Assessment(
        quality_score=result.quality_score,
        delay_risk=result.delay_risk,
        cost_overrun_risk=result.cost_overrun_risk,
        implementation_risk=result.implementation_risk,
        missing_sections=json.dumps(result.missing_sections),
        weak_sections=json.dumps(result.weak_sections),
        explanation=result.explanation,
        recommendation=result.recommendation,
    )
    dpr.assessments.append(row)
    dpr.status = "reviewed"
    await session.commit()

    logger.info(
        "Assessed DPR %s: score=%d recommendation=%s",
        dpr.id, result.quality_score, result.recommendation,
    )
    return row, result


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@app.get("/health")
async def health():
    return {"status": "ok"}


@app.post("/dprs", response_model=DPROut, status_code=201)
@limiter.limit(RATE_LIMIT_PER_IP)
async def upload_dpr(
    request: Request,
    file: UploadFile = File(...),
    title: str = Form(...),
    project_name: str = Form(...),
    description: Optional[str] = Form(None),
):
    # --- Validate inputs ---
    if file.content_type not in ALLOWED_TYPES:
        raise HTTPException(
            status_code=400, detail="Please upload a PDF or Word document."
        )

    if not title.strip() or not project_name.strip():
        raise HTTPException(
            status_code=400, detail="Title and project name are required."
        )

    data = await file.read()

    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(status_code=400, detail="File size must be less than 50MB.")

    if len(data) == 0:
        raise HTTPException(status_code=400, detail="Uploaded file is empty.")

    # --- Persist ---
    async with SessionLocal() as session:
        dpr = DPR(
            title=title.strip(),
            project_name=project_name.strip(),
            description=description,
            file_name=file.filename or "document",
            file_type=file.content_type,
            file_data=data,
            status="pending",
            assessments=[],
        )
        session.add(dpr)
        await session.commit()
        dpr_id = dpr.id

        # The upload stands even when the first analysis fails; it can be
        # retried through /api/analyze.
        try:
            await _run_analysis(session, dpr)
        except Exception:
            logger.exception("Initial analysis failed for DPR %s", dpr_id)
            await session.rollback()
            dpr = await _get_dpr(session, dpr_id, populate_existing=True)

        return _dpr_out(dpr)


@app.post("/api/analyze", response_model=AnalyzeResponse)
@limiter.limit(RATE_LIMIT_PER_IP)
async def analyze(request: Request, body: AnalyzeRequest):
    if not body.dpr_id:
        raise HTTPException(status_code=400, detail="DPR ID is required")

    async with SessionLocal() as session:
        dpr = await _get_dpr(
            session, body.dpr_id, options=[undefer(DPR.file_data)]
        )
        try:
            row, result = await _run_analysis(session, dpr)
        except Exception as exc:
            logger.exception("Analysis failed for DPR %s", body.dpr_id)
            raise HTTPException(status_code=500, detail="Analysis failed") from exc

    return AnalyzeResponse(
        success=True, assessment=_assessment_out(row), analysis=result
    )


@app.get("/dprs", response_model=list[DPROut])
async def list_dprs(
    search: Optional[str] = None,
    status: Optional[str] = None,
    risk: Optional[str] = None,
):
    query = select(DPR).order_by(DPR.created_at.desc())
    if search:
        term = search.lower()
        query = query.where(
            or_(
                func.lower(DPR.title).contains(term, autoescape=True),
                func.lower(DPR.project_name).contains(term, autoescape=True),
            )
        )
    if status and status != "all":
        query = query.where(DPR.status == status)

    async with SessionLocal() as session:
        dprs = (await session.scalars(query)).all()

    if risk and risk != "all":
        dprs = [
            d for d in dprs
            if d.latest_assessment is not None
            and risk in (
                d.latest_assessment.delay_risk,
                d.latest_assessment.cost_overrun_risk,
                d.latest_assessment.implementation_risk,
            )
        ]

    return [_dpr_out(d) for d in dprs]


@app.get("/dprs/{dpr_id}", response_model=DPROut)
async def get_dpr(dpr_id: str):
    async with SessionLocal() as session:
        dpr = await _get_dpr(session, dpr_id)
    return _dpr_out(dpr)


@app.post("/dprs/{dpr_id}/decision", response_model=DPROut)
async def record_decision(dpr_id: str, body: DecisionRequest):
    approved = body.decision == "approve"
    async with SessionLocal() as session:
        dpr = await _get_dpr(session, dpr_id)
        latest = dpr.latest_assessment
        if latest:
            latest.final_decision = "approved" if approved else "rejected"
            latest.reviewer_comments = body.comments
        dpr.status = "approved" if approved else "rejected"
        await session.commit()
    return _dpr_out(dpr)


@app.get("/stats", response_model=DashboardStats)
async def stats():
    async with SessionLocal() as session:
        dprs = (await session.scalars(select(DPR))).all()

    latest = [d.latest_assessment for d in dprs if d.latest_assessment]
    avg_score = (
        math.floor(sum(a.quality_score for a in latest) / len(latest) + 0.5)
        if latest
        else 0
    )

    return DashboardStats(
        total=len(dprs),
        pending=sum(d.status in ("pending", "analyzing") for d in dprs),
        approved=sum(d.status == "approved" for d in dprs),
        rejected=sum(d.status == "rejected" for d in dprs),
        avg_score=avg_score,
        delay_risk={
            level: sum(a.delay_risk == level for a in latest)
            for level in RISK_LEVELS
        },
        status_counts={s: sum(d.status == s for d in dprs) for s in STATUSES},
    )
