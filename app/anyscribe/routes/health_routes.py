"""
Health check route.

Endpoints:
    GET /api/health - transcriber availability and host platform
"""

import logging
import platform
import sys

from fastapi import APIRouter, Depends, Request

from commons import limiter
from configs.config import get_config
from anyscribe.context import ServerContext, get_context
from anyscribe.transcription.cli import probe_transcriber

logger = logging.getLogger(__name__)

cfg = get_config()

router = APIRouter(prefix="/api", tags=["health"])


@router.get("/health")
@limiter.limit(cfg.RATE_LIMIT_DEFAULT)
async def health(request: Request, ctx: ServerContext = Depends(get_context)) -> dict:
    installed = await probe_transcriber(ctx.command)
    if not installed:
        logger.warning("Health check: transcriber is not runnable")
    return {
        "status": "ok",
        "transcribeAnythingInstalled": installed,
        "platform": sys.platform,
        "arch": platform.machine(),
        "activeJobs": len(ctx.registry),
    }
