"""Dependency-injected job handler dispatch helpers."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

from folio.jobs.models import Job, JobType
from folio.storage.documents_repo import DocumentRecord


@dataclass(frozen=True)
class HandlerResult:
  """What a handler produced: the stored artifact name and any assets it had to skip."""

  artifact: str
  missing_keys: tuple[str, ...] = ()


class JobHandler(Protocol):
  """Handler contract for one job type."""

  async def run(self, job: Job, document: DocumentRecord) -> HandlerResult:
    """Render and store the artifact for one document."""


class JobHandlerRegistry:
  """Registry mapping job types to handlers."""

  def __init__(self, handlers: dict[JobType, JobHandler]) -> None:
    self._handlers = handlers

  def resolve(self, job_type: JobType | str) -> JobHandler:
    handler = self._handlers.get(job_type)  # type: ignore[call-overload]
    if handler is None:
      raise ValueError(f"Unsupported job type: {job_type}")
    return handler

  def types(self) -> list[str]:
    return sorted(str(job_type) for job_type in self._handlers)
