"""Background processor for queued render jobs."""

from __future__ import annotations

import logging

from folio.config import Settings
from folio.jobs.dispatch import HandlerResult, JobHandler, JobHandlerRegistry
from folio.jobs.errors import JobError, TargetGone
from folio.jobs.handlers import PdfGenerateHandler, TemplatePreviewHandler
from folio.jobs.models import Job, JobOutcome, JobType
from folio.jobs.retry import RetryPolicy
from folio.notifications.contracts import completed_event, error_event
from folio.notifications.publisher import NotificationPublisher
from folio.storage.documents_repo import DocumentRecord, DocumentsRepository

GENERIC_FAILURE_MESSAGE = "Document generation failed"


class JobProcessor:
  """Runs one delivery of a job and decides between completion, retry and dead-letter."""

  def __init__(self, *, documents_repo: DocumentsRepository, publisher: NotificationPublisher, settings: Settings, registry: JobHandlerRegistry | None = None, retry_policy: RetryPolicy | None = None) -> None:
    self._documents_repo = documents_repo
    self._publisher = publisher
    self._settings = settings
    self._logger = logging.getLogger(__name__)
    self._registry = registry or self._build_default_registry()
    self._retry_policy = retry_policy or RetryPolicy.from_settings(settings)

  def _build_default_registry(self) -> JobHandlerRegistry:
    """Wire the production handlers: internal print API, Chromium renderer, object storage."""
    from folio.rendering.orchestrator import BrowserRenderer
    from folio.rendering.print_client import PrintDataClient
    from folio.services.storage_client import build_storage_client

    print_data = PrintDataClient(self._settings)
    renderer = BrowserRenderer(self._settings)
    store = build_storage_client(self._settings)
    handlers: dict[JobType, JobHandler] = {
      JobType.PDF_GENERATE: PdfGenerateHandler(print_data, renderer, store),
      JobType.TEMPLATE_PREVIEW: TemplatePreviewHandler(print_data, renderer, store),
    }
    return JobHandlerRegistry(handlers)

  @property
  def retry_policy(self) -> RetryPolicy:
    return self._retry_policy

  async def process(self, job: Job) -> JobOutcome:
    """Execute one attempt; never raises for job-level failures."""
    log_context = f"type={job.type} target_id={job.target_id} correlation_id={job.correlation_id} attempt={job.attempt}"
    self._logger.info("Starting job %s", log_context)

    try:
      handler = self._registry.resolve(job.type)
    except ValueError:
      self._logger.error("Dead-lettered job with no handler %s", log_context)
      return JobOutcome(status="dead_letter", job=job, error_message="unsupported job type")

    try:
      document = await self._documents_repo.get_document(job.type.kind, job.target_id)
    except Exception as exc:  # noqa: BLE001
      self._logger.error("Failed to load job target %s", log_context, exc_info=True)
      return await self._handle_failure(job, None, exc, retryable=True, log_context=log_context)
    if document is None:
      self._logger.warning("Target not found, skipping job %s", log_context)
      return JobOutcome(status="skipped", job=job)

    try:
      result = await handler.run(job, document)
      await self._documents_repo.mark_completed(document.kind, document.id, result.artifact)
    except TargetGone as exc:
      self._logger.warning("Target disappeared during job %s: %s", log_context, exc)
      return JobOutcome(status="skipped", job=job)
    except JobError as exc:
      return await self._handle_failure(job, document, exc, retryable=exc.retryable, log_context=log_context)
    except Exception as exc:  # noqa: BLE001
      # Unknown failures, repository errors included, get the transient treatment.
      self._logger.error("Unexpected job failure %s", log_context, exc_info=True)
      return await self._handle_failure(job, document, exc, retryable=True, log_context=log_context)

    return self._complete(job, document, result, log_context=log_context)

  def _complete(self, job: Job, document: DocumentRecord, result: HandlerResult, *, log_context: str) -> JobOutcome:
    self._publisher.publish(document.owner_id, completed_event(document.kind, document.id, job.correlation_id, result.missing_keys))
    if result.missing_keys:
      self._logger.warning("Job completed with %d missing assets %s", len(result.missing_keys), log_context)
    self._logger.info("Job completed %s artifact=%s", log_context, result.artifact)
    return JobOutcome(status="completed", job=job, missing_keys=result.missing_keys, artifact=result.artifact)

  async def _handle_failure(self, job: Job, document: DocumentRecord | None, exc: BaseException, *, retryable: bool, log_context: str) -> JobOutcome:
    if retryable and self._retry_policy.should_retry(job.attempt):
      delay = self._retry_policy.delay_for(job.attempt)
      self._logger.warning("Job attempt failed, retrying in %.1fs %s error=%s", delay, log_context, exc)
      return JobOutcome(status="retry", job=job, retry_delay=delay, error_message=str(exc))

    status = "dead_letter" if retryable else "failed"
    if retryable:
      self._logger.error("Dead-lettered job after %d attempts %s error=%s", job.attempt, log_context, exc)
    else:
      self._logger.error("Job failed without retry %s error=%s", log_context, exc)

    if document is None:
      # Owner unknown, so there is no channel to notify.
      return JobOutcome(status=status, job=job, error_message=str(exc))

    try:
      await self._documents_repo.mark_failed(document.kind, document.id)
    except Exception:  # noqa: BLE001
      self._logger.error("Failed to record job failure %s", log_context, exc_info=True)
    self._publisher.publish(document.owner_id, error_event(document.kind, document.id, job.correlation_id, GENERIC_FAILURE_MESSAGE))
    return JobOutcome(status=status, job=job, error_message=str(exc))

  async def drain(self) -> None:
    """Wait for notifications scheduled by earlier jobs; called before the event loop closes."""
    drain = getattr(self._publisher, "drain", None)
    if drain is not None:
      await drain()
