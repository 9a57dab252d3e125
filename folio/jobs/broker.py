"""Celery application and task that deliver render jobs to the worker pool.

Start a worker with:

  celery -A folio.jobs.broker worker --loglevel=INFO
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from celery import Celery, signals

from folio.config import get_settings
from folio.jobs.models import decode_job

logger = logging.getLogger(__name__)

TASK_NAME = "folio.jobs.process"
QUEUE_NAME = "folio.render"


def create_celery_app() -> Celery:
  settings = get_settings()
  app = Celery("folio", broker=settings.broker_url)
  app.conf.update(
    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,
    worker_concurrency=settings.worker_concurrency,
    task_serializer="json",
    accept_content=["json"],
    task_default_queue=QUEUE_NAME,
    task_ignore_result=True,
    broker_connection_retry_on_startup=True,
    broker_transport_options={"visibility_timeout": 3600},
  )
  return app


celery_app = create_celery_app()


@signals.setup_logging.connect
def _configure_worker_logging(**_kwargs: Any) -> None:
  """Use the service logging setup instead of Celery's default handlers."""
  from folio.core.logging import _initialize_logging

  _initialize_logging(get_settings(), process_name="worker")


@celery_app.task(name=TASK_NAME, bind=True, max_retries=None)
def process_job_task(self, job_type: str, payload: str) -> str:  # type: ignore[no-untyped-def]
  """Run one delivery; a retry outcome is handed back to Celery with the policy's countdown."""
  from folio.jobs.runner import run_job_once

  attempt = int(self.request.retries) + 1
  try:
    job = decode_job(job_type, payload, attempt=attempt)
  except ValueError:
    logger.error("Dead-lettered undecodable job type=%s payload=%r", job_type, payload[:512], exc_info=True)
    return "dead_letter"

  outcome = asyncio.run(run_job_once(job, get_settings()))
  if outcome.status == "retry":
    raise self.retry(countdown=outcome.retry_delay or 0)
  return outcome.status
