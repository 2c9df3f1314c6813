# Copyright (c) 2025 CoReason, Inc.
#
# This software is proprietary and dual-licensed.
# Licensed under the Prosperity Public License 3.0 (the "License").
# A copy of the license is available at https://prosperitylicense.com/versions/3.0.0
# For details, see the LICENSE file.
# Commercial use beyond a 30-day trial requires a separate license.
#
# Source Code: https://github.com/CoReason-AI/coreason_interop

from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, AsyncGenerator, Dict, List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.responses import JSONResponse
from loguru import logger

from coreason_interop.config import Settings
from coreason_interop.context import InteropContext
from coreason_interop.exceptions import DuplicateKey, InvalidInput, MappingNotFound, NotFound, SubmissionNotFound
from coreason_interop.schemas import (
    CodingResource,
    EMRSubmission,
    MappingPage,
    MappingResult,
    Pagination,
    RecentBundleEntry,
    RecentBundleList,
    SubmissionFilters,
    SubmissionHandle,
    SubmissionPage,
    SubmissionRequest,
    SubmissionStatus,
    SystemCount,
    TerminologyEntry,
)
from coreason_interop.utils.logger import configure


# Lifespan Management
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Lifespan context manager that builds the service root on startup and drains
    background processing on shutdown.
    """
    settings = Settings.from_env()
    configure(settings.log_level)
    logger.info(f"Initializing Interop Server with database: {settings.db_path}")

    try:
        app.state.context = InteropContext(settings)
        logger.info("Interop services loaded successfully.")
    except Exception as e:
        logger.exception("Failed to initialize Interop services.")
        # We raise to ensure the server doesn't start in a broken state
        raise RuntimeError(f"Server initialization failed: {e}") from e

    yield

    logger.info("Shutting down Interop Server.")
    app.state.context.close()


app = FastAPI(title="Coreason Interop API", lifespan=lifespan)


def get_context(request: Request) -> InteropContext:
    context: InteropContext = request.app.state.context
    return context


# --- Error mapping ---


@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput) -> JSONResponse:
    return JSONResponse(status_code=400, content={"error": exc.message})


@app.exception_handler(MappingNotFound)
async def mapping_not_found_handler(request: Request, exc: MappingNotFound) -> JSONResponse:
    return JSONResponse(
        status_code=404,
        content={"error": exc.message, "source": {"code": exc.code, "system": exc.system}, "mapped": []},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound) -> JSONResponse:
    return JSONResponse(status_code=404, content={"error": exc.message})


@app.exception_handler(DuplicateKey)
async def duplicate_key_handler(request: Request, exc: DuplicateKey) -> JSONResponse:
    return JSONResponse(status_code=409, content={"error": exc.message, "code": exc.code})


@app.get("/health")
async def health_check() -> dict[str, str]:
    """
    Health check endpoint. Returns status ready once services are loaded.
    """
    return {"status": "ready"}


# --- EMR submissions ---


@app.post("/api/emr/submit", response_model=SubmissionHandle, status_code=202)
def submit_emr(request: SubmissionRequest, ctx: InteropContext = Depends(get_context)) -> SubmissionHandle:
    """
    Accept an EMR bundle. Processing happens in the background; poll the
    submission by id to observe its final status.
    """
    return ctx.pipeline.submit(
        patient_id=request.patient_id,
        clinician_id=request.clinician_id,
        encounter_notes=request.encounter_notes,
        fhir_bundle=request.fhir_bundle,
    )


@app.get("/api/emr", response_model=SubmissionPage)
def list_emr(
    status: Optional[SubmissionStatus] = None,
    patient_id: Optional[str] = Query(None, alias="patientId"),
    clinician_id: Optional[str] = Query(None, alias="clinicianId"),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    ctx: InteropContext = Depends(get_context),
) -> SubmissionPage:
    filters = SubmissionFilters(
        status=status,
        patient_id=patient_id,
        clinician_id=clinician_id,
        start_date=start_date,
        end_date=end_date,
    )
    submissions, total = ctx.submissions.list(filters, page=page, limit=limit)
    return SubmissionPage(emr_data=submissions, pagination=Pagination.build(page, limit, total))


@app.get("/api/emr/patient/{patient_id}", response_model=SubmissionPage)
def list_patient_emr(
    patient_id: str,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    ctx: InteropContext = Depends(get_context),
) -> SubmissionPage:
    submissions, total = ctx.submissions.list(SubmissionFilters(patient_id=patient_id), page=page, limit=limit)
    return SubmissionPage(emr_data=submissions, pagination=Pagination.build(page, limit, total))


@app.get("/api/emr/recent-bundles", response_model=RecentBundleList)
def recent_bundles(ctx: InteropContext = Depends(get_context)) -> RecentBundleList:
    """Metadata for the most recently submitted bundles, newest first."""
    summaries = ctx.cache.summaries()
    return RecentBundleList(recent_bundles=summaries, count=len(summaries), max_cache_size=ctx.cache.max_size)


@app.get("/api/emr/recent-bundles/{submission_id}", response_model=RecentBundleEntry)
def recent_bundle(submission_id: str, ctx: InteropContext = Depends(get_context)) -> RecentBundleEntry:
    entry = ctx.cache.get_by_id(submission_id)
    if entry is None:
        raise NotFound("Bundle not found in cache", {"id": submission_id})
    return entry


@app.get("/api/emr/{submission_id}", response_model=EMRSubmission)
def get_emr(submission_id: str, ctx: InteropContext = Depends(get_context)) -> EMRSubmission:
    submission = ctx.submissions.get(submission_id)
    if submission is None:
        raise SubmissionNotFound(submission_id)
    return submission


# --- Mappings ---


@app.get("/api/mapping", response_model=MappingPage)
def list_mappings(
    source_system: Optional[str] = Query(None, alias="sourceSystem"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    ctx: InteropContext = Depends(get_context),
) -> MappingPage:
    mappings, total = ctx.mappings.list(page=page, limit=limit, source_system=source_system)
    return MappingPage(mappings=mappings, pagination=Pagination.build(page, limit, total))


@app.get("/api/mapping/{code}", response_model=MappingResult)
def get_mapping(
    code: str, system: Optional[str] = None, ctx: InteropContext = Depends(get_context)
) -> MappingResult:
    """
    Resolve a code to its reviewed/approved mappings. A code with no mapping
    answers 404 with an empty `mapped` list.
    """
    return ctx.resolver.resolve(code, system)


@app.post("/api/fhir/condition", response_model=CodingResource, response_model_exclude_none=True)
def synthesize_condition(mapping: MappingResult, ctx: InteropContext = Depends(get_context)) -> CodingResource:
    """Render a resolved mapping as a FHIR Condition."""
    return ctx.synthesizer.synthesize(mapping)


# --- Terminology ---


@app.get("/api/terminology/search")
def search_terminology(
    query: str = "",
    system: Optional[str] = None,
    limit: int = Query(10, ge=1, le=100),
    ctx: InteropContext = Depends(get_context),
) -> Dict[str, List[TerminologyEntry]]:
    return {"results": ctx.terminology.search(query, system=system, limit=limit)}


@app.get("/api/terminology/systems")
def terminology_systems(ctx: InteropContext = Depends(get_context)) -> Dict[str, List[str]]:
    return {"systems": ctx.terminology.systems()}


@app.get("/api/terminology/stats/systems")
def terminology_stats(ctx: InteropContext = Depends(get_context)) -> Dict[str, List[SystemCount]]:
    return {"stats": ctx.terminology.stats()}


@app.get("/api/terminology/{code}", response_model=TerminologyEntry)
def get_terminology(code: str, ctx: InteropContext = Depends(get_context)) -> TerminologyEntry:
    entry = ctx.terminology.get(code)
    if entry is None:
        raise NotFound("Terminology not found", {"code": code})
    return entry


@app.post("/api/terminology", response_model=TerminologyEntry, status_code=201)
def create_terminology(entry: TerminologyEntry, ctx: InteropContext = Depends(get_context)) -> TerminologyEntry:
    return ctx.terminology.create(entry)


@app.delete("/api/terminology/{code}")
def deactivate_terminology(code: str, ctx: InteropContext = Depends(get_context)) -> Dict[str, Any]:
    ctx.terminology.deactivate(code)
    return {"message": "Terminology deactivated successfully", "code": code}
