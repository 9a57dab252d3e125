from __future__ import annotations

from folio.config import Settings
from folio.services.tasks.celery_queue import CeleryEnqueuer
from folio.services.tasks.inline import InlineEnqueuer
from folio.services.tasks.interface import TaskEnqueuer
from folio.services.tasks.local import LocalHttpEnqueuer


def get_task_enqueuer(settings: Settings) -> TaskEnqueuer:
  """Factory to get the configured task enqueuer."""
  if settings.task_service_provider == "local-http":
    return LocalHttpEnqueuer(settings)
  if settings.task_service_provider == "inline":
    return InlineEnqueuer(settings)
  return CeleryEnqueuer()
