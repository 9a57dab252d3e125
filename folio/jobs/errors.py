"""Failure classes for background jobs and the codes reported to clients."""

from __future__ import annotations

from enum import IntEnum


class ErrorCode(IntEnum):
  """Codes carried by job notifications and payload warnings."""

  OK = 0
  RESOURCE_MISSING = 4004
  SYSTEM_ERROR = 5000


class JobError(Exception):
  """Base class for job failures; `retryable` drives the queue's retry decision."""

  retryable = False
  code = ErrorCode.SYSTEM_ERROR


class TransientJobError(JobError):
  """Infrastructure failure (browser launch, navigation timeout, upstream 5xx) worth retrying."""

  retryable = True


class FatalJobError(JobError):
  """Failure that will not improve on retry (malformed payload, missing configuration)."""


class TargetGone(JobError):
  """The document a job points at no longer exists; the job is acknowledged and dropped."""


class AssemblyError(FatalJobError):
  """Stored layout could not be decoded into a render payload."""
