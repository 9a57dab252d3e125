"""Entry points that execute jobs outside a request: the broker worker and the local-dev runner."""

from __future__ import annotations

import asyncio
import logging

from folio.config import Settings
from folio.jobs.models import Job, JobOutcome
from folio.jobs.worker import JobProcessor

logger = logging.getLogger(__name__)


def build_job_processor(settings: Settings) -> JobProcessor:
  """Processor wired to Postgres and Redis for the current event loop."""
  from folio.core.redis import get_redis
  from folio.notifications.publisher import RedisNotificationPublisher
  from folio.storage.postgres_documents_repo import build_documents_repo

  return JobProcessor(documents_repo=build_documents_repo(), publisher=RedisNotificationPublisher(get_redis()), settings=settings)


async def run_job_once(job: Job, settings: Settings, *, processor: JobProcessor | None = None) -> JobOutcome:
  """Process one delivery and release loop-bound clients before the loop closes."""
  from folio.core.database import dispose_engine
  from folio.core.redis import close_redis

  owned = processor is None
  processor = processor or build_job_processor(settings)
  try:
    outcome = await processor.process(job)
    await processor.drain()
    return outcome
  finally:
    if owned:
      await close_redis()
      await dispose_engine()


async def run_job_locally(job: Job, settings: Settings, *, processor: JobProcessor | None = None) -> JobOutcome:
  """Process a job in-process, sleeping through the retry schedule (local-http and inline providers)."""
  processor = processor or build_job_processor(settings)
  while True:
    outcome = await processor.process(job)
    if outcome.status != "retry":
      return outcome
    await asyncio.sleep(outcome.retry_delay or 0)
    job = job.next_attempt()
