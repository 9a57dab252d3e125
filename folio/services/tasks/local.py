from __future__ import annotations

import logging
import uuid
from urllib.parse import urlparse

import httpx

from folio.config import Settings
from folio.jobs.models import Job
from folio.services.tasks.interface import TaskEnqueuer

logger = logging.getLogger(__name__)

PROCESS_JOB_PATH = "/internal/tasks/process-job"


class LocalHttpEnqueuer(TaskEnqueuer):
  """Enqueues jobs via local HTTP requests to the task endpoint, for development without a broker."""

  def __init__(self, settings: Settings) -> None:
    self.settings = settings

  def _should_use_asgi_transport(self, base_url: str) -> bool:
    """Decide if we should route requests in-process via ASGITransport."""
    parsed = urlparse(base_url)
    hostname = (parsed.hostname or "").lower()
    return hostname in {"localhost", "127.0.0.1", "::1", "0.0.0.0"}

  def _build_client(self, base_url: str) -> httpx.AsyncClient:
    # Never trust environment proxy variables for internal task dispatch.
    if self._should_use_asgi_transport(base_url):
      from folio.main import app

      transport = httpx.ASGITransport(app=app)
      return httpx.AsyncClient(transport=transport, base_url=base_url, trust_env=False)
    return httpx.AsyncClient(trust_env=False)

  def _task_headers(self) -> dict[str, str]:
    if not self.settings.task_secret:
      raise RuntimeError("Task secret not configured.")
    return {"authorization": f"Bearer {self.settings.task_secret}"}

  async def enqueue(self, job: Job) -> str:
    if not self.settings.base_url:
      raise RuntimeError("Base URL not configured, strictly required for LocalHttpEnqueuer.")

    url = f"{self.settings.base_url.rstrip('/')}{PROCESS_JOB_PATH}"
    task_id = uuid.uuid4().hex
    body = {"type": str(job.type), "target_id": job.target_id, "correlation_id": job.correlation_id, "task_id": task_id}
    try:
      async with self._build_client(self.settings.base_url) as client:
        logger.info("Dispatching %s locally to %s", job.type, url)
        response = await client.post(url, json=body, headers=self._task_headers(), timeout=30.0)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
      logger.error("Local task dispatch returned %s for %s target_id=%s: %s", e.response.status_code, job.type, job.target_id, e.response.text)
      raise
    except httpx.RequestError as e:
      logger.error("Failed to dispatch local task for %s target_id=%s: %s", job.type, job.target_id, e)
      raise
    return task_id
