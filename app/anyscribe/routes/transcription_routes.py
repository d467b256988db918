"""
Transcription job API routes.

Endpoints:
    POST   /api/transcribe       - upload a file or give a URL & start a job
    GET    /api/jobs             - list running jobs
    GET    /api/jobs/{job_id}    - status of one running job
    DELETE /api/jobs/{job_id}    - cancel a running job
"""

import logging
import os
from typing import Optional

from fastapi import (
    APIRouter,
    Depends,
    File,
    Form,
    HTTPException,
    Request,
    UploadFile,
)
from pydantic import ValidationError

from commons import limiter
from configs.config import get_config
from security import (
    safe_error_response,
    validate_file_extension,
    validate_job_id,
    validate_url,
)
from anyscribe.context import ServerContext, get_context
from anyscribe.transcription.models import Job, TranscriptionSettings

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(prefix="/api", tags=["transcription"])

UPLOAD_CHUNK_SIZE = 1024 * 1024


def parse_settings(raw: Optional[str]) -> TranscriptionSettings:
    """Deserialize the ``settings`` form field, or raise 400."""
    if raw is None or not raw.strip():
        return TranscriptionSettings()
    try:
        return TranscriptionSettings.model_validate_json(raw)
    except ValidationError as exc:
        logger.warning("Rejected settings payload: %s", exc.errors()[0].get("msg"))
        raise HTTPException(status_code=400, detail="Invalid settings payload")


async def save_upload(file: UploadFile, destination: str, max_size: int) -> int:
    """Stream an upload to disk, enforcing ``max_size``. Returns bytes written."""
    total_bytes = 0
    with open(destination, "wb") as out:
        while True:
            chunk = await file.read(UPLOAD_CHUNK_SIZE)
            if not chunk:
                break
            total_bytes += len(chunk)
            if total_bytes > max_size:
                out.close()
                os.remove(destination)
                raise HTTPException(
                    status_code=413,
                    detail=(
                        f"File too large. Maximum allowed size is "
                        f"{max_size // (1024 ** 2)} MB."
                    ),
                )
            out.write(chunk)
    return total_bytes


# ── Submit ───────────────────────────────────────────────────────────────


@router.post("/transcribe")
@limiter.limit(cfg.RATE_LIMIT_SUBMIT)
async def submit_job(
    request: Request,
    file: Optional[UploadFile] = File(default=None),
    url: Optional[str] = Form(default=None),
    settings: Optional[str] = Form(default=None),
    ctx: ServerContext = Depends(get_context),
) -> dict:
    """Accept a media file or URL and start transcribing it."""
    has_url = bool(url and url.strip())
    if file is not None and has_url:
        raise HTTPException(status_code=400, detail="Provide either a file or a URL, not both")
    if file is None and not has_url:
        raise HTTPException(status_code=400, detail="No file or URL provided")

    parsed_settings = parse_settings(settings)

    if has_url:
        source = validate_url(url)
    else:
        validate_file_extension(file.filename)

    job_id = ctx.registry.new_id()
    logger.info(
        "Creating job %s from %s (model=%s, task=%s, language=%s, device=%s)",
        job_id, "url" if has_url else "upload", parsed_settings.model,
        parsed_settings.task, parsed_settings.language, parsed_settings.device,
    )

    try:
        if not has_url:
            ext = os.path.splitext(file.filename)[1].lower()
            source = os.path.join(ctx.upload_dir, f"{job_id}{ext}")
            total_bytes = await save_upload(file, source, ctx.max_upload_size)
            logger.debug("Upload for job %s saved to %s (%d bytes)", job_id, source, total_bytes)

        output_dir = ctx.output_dir_for(job_id)
        os.makedirs(output_dir, exist_ok=True)
    except HTTPException:
        raise
    except Exception as exc:
        safe_error_response(exc, context="submit_job")

    job = Job(
        job_id=job_id,
        source=source,
        is_upload=not has_url,
        settings=parsed_settings,
        output_dir=output_dir,
    )
    if not await ctx.runner.start(job):
        return {
            "jobId": job_id,
            "status": "failed",
            "message": "Could not start the transcriber",
        }

    return {"jobId": job_id, "status": "started"}


# ── Status ───────────────────────────────────────────────────────────────


@router.get("/jobs")
@limiter.limit(cfg.RATE_LIMIT_DEFAULT)
def list_jobs(request: Request, ctx: ServerContext = Depends(get_context)) -> dict:
    """List the jobs whose process is still running."""
    jobs = [job.summary() for job in ctx.registry.all()]
    return {"jobs": jobs, "total": len(jobs)}


@router.get("/jobs/{job_id}")
@limiter.limit(cfg.RATE_LIMIT_DEFAULT)
def get_status(request: Request, job_id: str, ctx: ServerContext = Depends(get_context)) -> dict:
    """Return status and progress of a running job."""
    validate_job_id(job_id)
    job = ctx.registry.get(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job.summary()


# ── Cancel ───────────────────────────────────────────────────────────────


@router.delete("/jobs/{job_id}")
@limiter.limit(cfg.RATE_LIMIT_DEFAULT)
async def cancel_job(request: Request, job_id: str, ctx: ServerContext = Depends(get_context)) -> dict:
    """Terminate a running job's process and mark it cancelled."""
    validate_job_id(job_id)
    if not await ctx.runner.cancel(job_id):
        raise HTTPException(status_code=404, detail="Job not found")
    return {"jobId": job_id, "status": "cancelled"}
