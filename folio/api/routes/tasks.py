from __future__ import annotations

import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Header, HTTPException, status
from pydantic import BaseModel, Field

from folio.config import Settings, get_settings
from folio.jobs.models import Job, JobType
from folio.services.tasks.inline import InlineEnqueuer

router = APIRouter(prefix="/tasks", tags=["tasks"])
logger = logging.getLogger(__name__)


class TaskPayload(BaseModel):
  type: JobType
  target_id: int
  correlation_id: str = Field(default="", max_length=128)
  task_id: str | None = None


@router.post("/process-job", status_code=status.HTTP_202_ACCEPTED)
async def process_job_task(payload: TaskPayload, settings: Annotated[Settings, Depends(get_settings)], authorization: str | None = Header(default=None)) -> dict[str, str]:
  """
  Handler for the local-http task provider.
  Accepts the task quickly and runs the job on the API event loop so the dispatcher gets a fast 2xx response.
  """
  if not settings.task_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Task authentication is not configured.")
  expected_auth = f"Bearer {settings.task_secret}"
  if not secrets.compare_digest((authorization or "").encode("utf-8"), expected_auth.encode("utf-8")):
    logger.warning("Unauthorized access attempt to /process-job")
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid task secret.")

  job = Job(type=payload.type, target_id=payload.target_id, correlation_id=payload.correlation_id)
  logger.info("Received task %s for %s target_id=%s", payload.task_id, job.type, job.target_id)
  scheduled_id = await InlineEnqueuer(settings).enqueue(job)
  return {"status": "accepted", "task_id": payload.task_id or scheduled_id}
