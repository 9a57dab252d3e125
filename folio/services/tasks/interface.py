from __future__ import annotations

from typing import Protocol

from folio.jobs.models import Job


class TaskEnqueuer(Protocol):
  """Interface for handing render jobs to whatever runs them."""

  async def enqueue(self, job: Job) -> str:
    """Enqueue a job and return the task id assigned to it."""
    ...
