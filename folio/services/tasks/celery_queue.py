from __future__ import annotations

import logging

import msgspec
from starlette.concurrency import run_in_threadpool

from folio.jobs.models import Job
from folio.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)


class CeleryEnqueuer(TaskEnqueuer):
  """Publishes jobs to the Celery broker consumed by the render workers."""

  async def enqueue(self, job: Job) -> str:
    from folio.jobs.broker import process_job_task

    payload = msgspec.json.encode(job.payload()).decode("utf-8")
    # apply_async talks to the broker synchronously.
    result = await run_in_threadpool(process_job_task.apply_async, args=(str(job.type), payload))
    logger.info("Enqueued %s target_id=%s correlation_id=%s task_id=%s", job.type, job.target_id, job.correlation_id, result.id)
    return str(result.id)
