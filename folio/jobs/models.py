from __future__ import annotations

from enum import StrEnum
from typing import Literal

import msgspec


class DocumentKind(StrEnum):
  RESUME = "resume"
  TEMPLATE = "template"


class JobType(StrEnum):
  PDF_GENERATE = "pdf:generate"
  TEMPLATE_PREVIEW = "template:generate_preview"

  @property
  def kind(self) -> DocumentKind:
    return DocumentKind.RESUME if self is JobType.PDF_GENERATE else DocumentKind.TEMPLATE


JOB_TYPE_FOR_KIND = {DocumentKind.RESUME: JobType.PDF_GENERATE, DocumentKind.TEMPLATE: JobType.TEMPLATE_PREVIEW}

OutcomeStatus = Literal["completed", "retry", "dead_letter", "failed", "skipped"]


class JobPayload(msgspec.Struct):
  """Wire payload placed on the broker for one job."""

  target_id: int
  correlation_id: str = ""


class Job(msgspec.Struct, frozen=True):
  """One unit of queued work; attempt counts from 1."""

  type: JobType
  target_id: int
  correlation_id: str = ""
  attempt: int = 1

  def payload(self) -> JobPayload:
    return JobPayload(target_id=self.target_id, correlation_id=self.correlation_id)

  def next_attempt(self) -> Job:
    return Job(type=self.type, target_id=self.target_id, correlation_id=self.correlation_id, attempt=self.attempt + 1)


def decode_job(job_type: str, raw_payload: bytes | str, *, attempt: int = 1) -> Job:
  """Build a Job from a broker message; unknown types and bad payloads raise ValueError."""
  try:
    resolved_type = JobType(job_type)
  except ValueError as exc:
    raise ValueError(f"Unsupported job type: {job_type}") from exc
  try:
    payload = msgspec.json.decode(raw_payload, type=JobPayload)
  except (msgspec.DecodeError, msgspec.ValidationError) as exc:
    raise ValueError(f"Invalid job payload: {exc}") from exc
  return Job(type=resolved_type, target_id=payload.target_id, correlation_id=payload.correlation_id, attempt=attempt)


class JobOutcome(msgspec.Struct, frozen=True):
  """Terminal or retry decision returned by the processor for one delivery."""

  status: OutcomeStatus
  job: Job
  retry_delay: float | None = None
  error_message: str | None = None
  missing_keys: tuple[str, ...] = ()
  artifact: str | None = None
