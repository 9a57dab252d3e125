from dataclasses import replace
from unittest.mock import AsyncMock, Mock, patch

import pytest

from folio.jobs.models import Job, JobType
from folio.services.tasks.celery_queue import CeleryEnqueuer
from folio.services.tasks.factory import get_task_enqueuer
from folio.services.tasks.inline import InlineEnqueuer
from folio.services.tasks.local import LocalHttpEnqueuer


@pytest.mark.anyio
async def test_local_task_dispatch(settings):
  """Verify that the local enqueuer posts the job to the task endpoint."""
  settings = replace(settings, task_service_provider="local-http", base_url="http://localhost:8000")

  with patch("folio.services.tasks.local.httpx.AsyncClient") as mock_client_cls:
    mock_client = AsyncMock()
    mock_client_cls.return_value.__aenter__.return_value = mock_client
    mock_response = Mock()
    mock_response.raise_for_status = Mock()
    mock_client.post.return_value = mock_response

    enqueuer = get_task_enqueuer(settings)
    assert isinstance(enqueuer, LocalHttpEnqueuer)

    task_id = await enqueuer.enqueue(Job(type=JobType.PDF_GENERATE, target_id=42, correlation_id="abc"))

    mock_client.post.assert_called_once()
    args, kwargs = mock_client.post.call_args
    assert args[0] == "http://localhost:8000/internal/tasks/process-job"
    assert kwargs["json"] == {"type": "pdf:generate", "target_id": 42, "correlation_id": "abc", "task_id": task_id}
    assert kwargs["headers"] == {"authorization": "Bearer test-task-secret"}


@pytest.mark.anyio
async def test_local_dispatch_requires_base_url(settings):
  enqueuer = LocalHttpEnqueuer(replace(settings, base_url=None))
  with pytest.raises(RuntimeError):
    await enqueuer.enqueue(Job(type=JobType.PDF_GENERATE, target_id=1))


@pytest.mark.anyio
async def test_celery_dispatch_sends_job_payload(settings):
  with patch("folio.jobs.broker.process_job_task.apply_async") as apply_async:
    apply_async.return_value = Mock(id="celery-1")
    task_id = await CeleryEnqueuer().enqueue(Job(type=JobType.TEMPLATE_PREVIEW, target_id=3, correlation_id="xyz"))

  assert task_id == "celery-1"
  assert apply_async.call_args.kwargs["args"] == ("template:generate_preview", '{"target_id":3,"correlation_id":"xyz"}')


def test_factory_selects_provider(settings):
  assert isinstance(get_task_enqueuer(replace(settings, task_service_provider="celery")), CeleryEnqueuer)
  assert isinstance(get_task_enqueuer(replace(settings, task_service_provider="inline")), InlineEnqueuer)
