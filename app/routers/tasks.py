# =============================================================================
# app/routers/tasks.py - Background Task Status
# =============================================================================
# Status, result and cancellation for Celery tasks such as asset pack
# processing. Admin only; the tasks themselves are admin-triggered.
# =============================================================================

import logging
from typing import Annotated

from fastapi import APIRouter, HTTPException, Path
from pydantic import BaseModel

from app.dependencies import AdminUser

logger = logging.getLogger(__name__)

router = APIRouter()

FINISHED_STATES = ("SUCCESS", "FAILURE", "REVOKED")

# Message shown for states that carry no progress meta
STATE_MESSAGES = {
    "PENDING": "Waiting in queue...",
    "STARTED": "Starting...",
    "SUCCESS": "Complete",
    "FAILURE": "Failed",
    "REVOKED": "Cancelled",
}


class TaskStatusResponse(BaseModel):
    """Snapshot of a task."""
    task_id: str
    status: str
    progress: int | None = None
    current: int | None = None
    total: int | None = None
    message: str | None = None
    result: dict | None = None
    error: str | None = None


def _async_result(task_id: str):
    from workers.celery_app import celery_app

    return celery_app.AsyncResult(task_id)


@router.get("/{task_id}", response_model=TaskStatusResponse)
async def get_task_status(
    task_id: Annotated[str, Path(description="Celery task ID")],
    admin: AdminUser,
):
    """
    Current state of a task.

    PROGRESS responses include progress (0-100), current/total item counts
    and the step being worked on.
    """
    try:
        result = _async_result(task_id)
        status = result.status
    except Exception as e:
        logger.error(f"Error getting task status for {task_id}: {e}")
        raise HTTPException(status_code=503, detail=f"Task backend unavailable: {e}")

    response = TaskStatusResponse(task_id=task_id, status=status, message=STATE_MESSAGES.get(status))

    if status == "PROGRESS":
        info = result.info if isinstance(result.info, dict) else {}
        response.progress = info.get("percent", 0)
        response.current = info.get("current")
        response.total = info.get("total")
        response.message = info.get("message", "Processing...")
    elif status == "SUCCESS":
        response.progress = 100
        response.result = result.result if isinstance(result.result, dict) else {"value": result.result}
    elif status == "FAILURE":
        response.error = str(result.result) if result.result else "Unknown error"
    else:
        response.progress = 0

    return response


@router.get("/{task_id}/result")
async def get_task_result(
    task_id: Annotated[str, Path(description="Celery task ID")],
    admin: AdminUser,
):
    """The task's return value once it has finished successfully."""
    try:
        result = _async_result(task_id)
        status = result.status
    except Exception as e:
        logger.error(f"Error getting task result for {task_id}: {e}")
        raise HTTPException(status_code=503, detail=f"Task backend unavailable: {e}")

    if status == "SUCCESS":
        return {"task_id": task_id, "status": status, "result": result.result}
    if status == "FAILURE":
        return {"task_id": task_id, "status": status, "error": str(result.result) if result.result else "Unknown error"}
    return {"task_id": task_id, "status": status, "message": "Task not yet complete"}


@router.delete("/{task_id}")
async def cancel_task(
    task_id: Annotated[str, Path(description="Celery task ID")],
    admin: AdminUser,
):
    """Revoke a queued or running task."""
    try:
        result = _async_result(task_id)
        if result.status in FINISHED_STATES:
            return {
                "task_id": task_id,
                "message": f"Task already {result.status.lower()}, cannot cancel",
                "cancelled": False,
            }
        result.revoke(terminate=True)
    except Exception as e:
        logger.error(f"Error cancelling task {task_id}: {e}")
        raise HTTPException(status_code=503, detail=f"Task backend unavailable: {e}")

    logger.info(f"Task {task_id} revoked by {admin.uid}")
    return {"task_id": task_id, "message": "Task cancelled", "cancelled": True}
