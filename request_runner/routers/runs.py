"""
Collection run API routes.

Starts collection runs in the background and exposes the runner
control surface (pause, resume, stop) plus live progress, either by
polling or as a server-sent event stream.
"""

import json

from fastapi import APIRouter, Depends, status
from fastapi.responses import StreamingResponse

from ..exceptions import ErrorResponse
from ..schemas.run import RunStartRequest, RunState
from ..services.run_manager import RunManager, get_run_manager


router = APIRouter(
    prefix="/api/runs",
    tags=["runs"],
    responses={404: {"model": ErrorResponse}, 409: {"model": ErrorResponse}},
)


def _sse(state: RunState) -> str:
    return f"data: {json.dumps(state.model_dump(mode='json'))}\n\n"


@router.post("", response_model=RunState, status_code=status.HTTP_202_ACCEPTED)
async def start_run(
    payload: RunStartRequest,
    manager: RunManager = Depends(get_run_manager),
):
    """
    Start running a collection.

    The run proceeds in the background; poll ``GET /api/runs/{run_id}``
    or subscribe to ``/events`` for progress.
    """
    run_id = manager.start(payload)
    return manager.snapshot(run_id)


@router.get("", response_model=list[RunState])
async def list_runs(manager: RunManager = Depends(get_run_manager)):
    """List all known runs."""
    return [manager.snapshot(run_id) for run_id in manager.list_ids()]


@router.get("/{run_id}", response_model=RunState)
async def get_run(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Current state, iteration, results and summary of a run."""
    return manager.snapshot(run_id)


@router.post("/{run_id}/pause", response_model=RunState)
async def pause_run(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Pause a run before its next request (sequential mode only)."""
    return manager.pause(run_id)


@router.post("/{run_id}/resume", response_model=RunState)
async def resume_run(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Resume a paused run."""
    return manager.resume(run_id)


@router.post("/{run_id}/stop", response_model=RunState)
async def stop_run(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Abort a run; completed results are kept."""
    return manager.stop(run_id)


@router.delete("/{run_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_run(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Forget a finished run."""
    manager.remove(run_id)
    return None


@router.get("/{run_id}/events")
async def stream_run_events(run_id: str, manager: RunManager = Depends(get_run_manager)):
    """Server-sent events carrying a run snapshot after every change."""
    manager.get(run_id)

    async def event_source():
        async for state in manager.events(run_id):
            yield _sse(state)

    return StreamingResponse(event_source(), media_type="text/event-stream")
