# tool_exporter/api/routes.py
"""HTTP endpoints for starting, polling, cancelling, and downloading exports."""

import logging
from pathlib import Path

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import FileResponse

from tool_exporter.background.lifecycle import ServiceLifecycle
from tool_exporter.errors import PreflightFailed
from tool_exporter.models.jobs import ExportJob, JobStatus
from tool_exporter.models.responses import (
    CancelExportResponse,
    ExportStatusResponse,
    ListExportsResponse,
    PreflightResponse,
    StartExportResponse,
)
from tool_exporter.tools.list_exports import summarize_job
from tool_exporter.tools.preflight_export import build_preflight_response
from tool_exporter.validation.sanitize import sanitize_job_id, sanitize_tool_id

logger = logging.getLogger(__name__)

router = APIRouter()


def get_lifecycle(request: Request) -> ServiceLifecycle:
    return request.app.state.lifecycle


async def _load_job(lifecycle: ServiceLifecycle, job_id: str) -> ExportJob:
    try:
        job_id = sanitize_job_id(job_id)
    except ValueError:
        raise HTTPException(status_code=404, detail=f"Export job '{job_id}' not found")
    job = await lifecycle.store.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Export job '{job_id}' not found")
    return job


@router.post("/tools/{tool_id}/export", status_code=201, response_model=StartExportResponse)
async def start_export(
    tool_id: str, lifecycle: ServiceLifecycle = Depends(get_lifecycle)
) -> StartExportResponse:
    try:
        job, result = await lifecycle.runner.submit(tool_id)
    except PreflightFailed as e:
        status_code = 404 if e.not_found else 400
        raise HTTPException(
            status_code=status_code,
            detail={
                "message": e.message,
                "reasons": e.result.reasons,
                "errors": [{"code": i.code, "message": i.message} for i in e.result.errors],
            },
        )
    except RuntimeError as e:
        raise HTTPException(status_code=503, detail=str(e))

    return StartExportResponse(
        job_id=job.job_id,
        tool_id=job.tool_id,
        tool_type=job.tool_type.value,
        status=job.status.value,
        steps_total=job.steps_total,
        warnings=[issue.message for issue in result.warnings],
        next_steps=f"Poll GET /exports/{job.job_id} to monitor progress",
    )


@router.get("/tools/{tool_id}/export/preflight", response_model=PreflightResponse)
async def preflight_export(
    tool_id: str, lifecycle: ServiceLifecycle = Depends(get_lifecycle)
) -> PreflightResponse:
    result = await lifecycle.runner.preflight(tool_id)
    return build_preflight_response(result)


@router.get("/exports", response_model=ListExportsResponse)
async def list_exports(
    tool_id: str | None = None,
    status: JobStatus | None = None,
    limit: int = Query(default=50, ge=1, le=500),
    lifecycle: ServiceLifecycle = Depends(get_lifecycle),
) -> ListExportsResponse:
    if tool_id is not None:
        try:
            tool_id = sanitize_tool_id(tool_id)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))
    jobs = await lifecycle.store.list_jobs(tool_id=tool_id, status=status, limit=limit)
    summaries = [summarize_job(job) for job in jobs]
    return ListExportsResponse(exports=summaries, total=len(summaries))


@router.get("/exports/{job_id}", response_model=ExportStatusResponse)
async def export_status(
    job_id: str, lifecycle: ServiceLifecycle = Depends(get_lifecycle)
) -> ExportStatusResponse:
    job = await _load_job(lifecycle, job_id)
    return ExportStatusResponse.from_job(job)


@router.post("/exports/{job_id}/cancel", response_model=CancelExportResponse)
async def cancel_export(
    job_id: str, lifecycle: ServiceLifecycle = Depends(get_lifecycle)
) -> CancelExportResponse:
    job = await _load_job(lifecycle, job_id)
    # JobNotFound / InvalidTransition are mapped by the app's ExportError handler
    job = await lifecycle.runner.cancel(job.job_id)
    return CancelExportResponse(job_id=job.job_id, steps_completed=job.steps_completed)


@router.get("/exports/{job_id}/download")
async def download_export(
    job_id: str, lifecycle: ServiceLifecycle = Depends(get_lifecycle)
) -> FileResponse:
    job = await _load_job(lifecycle, job_id)

    if job.status != JobStatus.COMPLETED:
        raise HTTPException(
            status_code=409,
            detail=f"Export job '{job.job_id}' is {job.status.value}; only completed exports can be downloaded",
        )
    if job.is_expired():
        raise HTTPException(status_code=410, detail="Export package has expired")

    path = Path(job.package_path)
    if not path.is_file():
        logger.warning(f"Package for job {job.job_id} is missing: {path}")
        raise HTTPException(status_code=410, detail="Export package is no longer available")

    if not await lifecycle.packager.verify_package(path, job.package_checksum):
        raise HTTPException(status_code=500, detail="Export package failed checksum verification")

    await lifecycle.store.record_download(job.job_id)
    logger.info(f"Serving package for job {job.job_id}")
    return FileResponse(
        path,
        media_type="application/gzip",
        filename=f"{job.tool_id}-{job.tool_type.value}.tar.gz",
    )
