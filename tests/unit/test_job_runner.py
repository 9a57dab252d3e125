from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from folio.jobs.models import Job, JobOutcome, JobType
from folio.jobs.runner import run_job_locally, run_job_once


@pytest.mark.anyio
async def test_local_runner_follows_the_retry_schedule(settings) -> None:
  job = Job(type=JobType.PDF_GENERATE, target_id=1)
  processor = AsyncMock()
  processor.process.side_effect = [JobOutcome(status="retry", job=job, retry_delay=0.0), JobOutcome(status="completed", job=job.next_attempt())]

  outcome = await run_job_locally(job, settings, processor=processor)

  assert outcome.status == "completed"
  attempts = [call.args[0].attempt for call in processor.process.await_args_list]
  assert attempts == [1, 2]


@pytest.mark.anyio
async def test_single_delivery_drains_notifications(settings) -> None:
  job = Job(type=JobType.PDF_GENERATE, target_id=1)
  processor = AsyncMock()
  processor.process.return_value = JobOutcome(status="retry", job=job, retry_delay=4.0)

  outcome = await run_job_once(job, settings, processor=processor)

  assert outcome.retry_delay == 4.0
  processor.drain.assert_awaited_once()
