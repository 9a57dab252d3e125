from __future__ import annotations

import asyncio
import logging
import uuid

from folio.config import Settings
from folio.jobs.models import Job, JobOutcome
from folio.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)

# Module level so scheduled jobs outlive the enqueuer instance that created them.
_RUNNING: set[asyncio.Task[JobOutcome]] = set()


class InlineEnqueuer(TaskEnqueuer):
  """Runs jobs on the API's own event loop; single-process development only."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  async def enqueue(self, job: Job) -> str:
    from folio.jobs.runner import run_job_locally

    task_id = uuid.uuid4().hex
    task = asyncio.create_task(run_job_locally(job, self.settings), name=f"job-{task_id}")
    _RUNNING.add(task)
    task.add_done_callback(_RUNNING.discard)
    task.add_done_callback(_log_task_error)
    logger.info("Scheduled %s inline target_id=%s task_id=%s", job.type, job.target_id, task_id)
    return task_id


def _log_task_error(task: asyncio.Task[JobOutcome]) -> None:
  if task.cancelled():
    return
  exc = task.exception()
  if exc is not None:
    logger.error("Inline job crashed: %s", exc, exc_info=exc)
