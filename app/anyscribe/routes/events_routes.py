"""
WebSocket push channel.

Endpoints:
    WS /ws                - every event of every job
    WS /ws/jobs/{job_id}  - events of one job only (latest event replayed)

The server only pushes; anything a client sends is ignored. Closing the
socket never affects the job.
"""

import logging

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from security import JOB_ID_PATTERN
from anyscribe.context import ServerContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["events"])

POLICY_VIOLATION = 1008


async def _hold_open(websocket: WebSocket) -> None:
    while True:
        await websocket.receive_text()


@router.websocket("/ws")
async def all_events(websocket: WebSocket, ctx: ServerContext = Depends(get_context)):
    await websocket.accept()
    ctx.hub.subscribe_all(websocket)
    try:
        await _hold_open(websocket)
    except WebSocketDisconnect:
        logger.debug("Firehose client disconnected")
    finally:
        ctx.hub.unsubscribe(websocket)


@router.websocket("/ws/jobs/{job_id}")
async def job_events(
    websocket: WebSocket, job_id: str, ctx: ServerContext = Depends(get_context)
):
    if not JOB_ID_PATTERN.match(job_id):
        await websocket.close(code=POLICY_VIOLATION)
        return

    await websocket.accept()
    await ctx.hub.subscribe_job(job_id, websocket)
    try:
        await _hold_open(websocket)
    except WebSocketDisconnect:
        logger.debug("Client for job %s disconnected", job_id)
    finally:
        ctx.hub.unsubscribe(websocket)
