"""Shared fixtures: in-memory collaborators, fake Redis, and an app client with overrides."""

from __future__ import annotations

from dataclasses import replace
from typing import Any

import fakeredis
import pytest
from httpx import ASGITransport, AsyncClient

from folio.config import Settings, get_settings
from folio.jobs.models import DocumentKind, Job
from folio.notifications.contracts import NotificationEvent
from folio.services.storage_client import ObjectNotFound, StorageObjectMetadata
from folio.storage.documents_repo import DocumentRecord


@pytest.fixture
def anyio_backend() -> str:
  return "asyncio"


class InMemoryDocumentsRepo:
  """In-memory documents repository mirroring the Postgres state transitions."""

  def __init__(self) -> None:
    self._documents: dict[tuple[DocumentKind, int], DocumentRecord] = {}

  def add(self, record: DocumentRecord) -> DocumentRecord:
    self._documents[(record.kind, record.id)] = record
    return record

  async def get_document(self, kind: DocumentKind, document_id: int) -> DocumentRecord | None:
    return self._documents.get((kind, document_id))

  async def mark_pending(self, kind: DocumentKind, document_id: int) -> None:
    record = self._documents.get((kind, document_id))
    if record is not None and kind is DocumentKind.RESUME:
      self._documents[(kind, document_id)] = replace(record, status="pending")

  async def mark_completed(self, kind: DocumentKind, document_id: int, artifact: str) -> None:
    record = self._documents.get((kind, document_id))
    if record is None:
      return
    status = "completed" if kind is DocumentKind.RESUME else record.status
    self._documents[(kind, document_id)] = replace(record, status=status, artifact=artifact)

  async def mark_failed(self, kind: DocumentKind, document_id: int) -> None:
    record = self._documents.get((kind, document_id))
    if record is not None and kind is DocumentKind.RESUME:
      self._documents[(kind, document_id)] = replace(record, status="failed")


class RecordingPublisher:
  """Publisher double that keeps every event it was handed."""

  def __init__(self) -> None:
    self.events: list[tuple[str, NotificationEvent]] = []

  def publish(self, owner_id: str, event: NotificationEvent) -> None:
    self.events.append((owner_id, event))

  async def publish_now(self, owner_id: str, event: NotificationEvent) -> int:
    self.publish(owner_id, event)
    return 1


class RecordingEnqueuer:
  def __init__(self) -> None:
    self.jobs: list[Job] = []

  async def enqueue(self, job: Job) -> str:
    self.jobs.append(job)
    return f"task-{len(self.jobs)}"


class FakeObjectStore:
  """Dict-backed stand-in for the storage client's download/upload surface."""

  def __init__(self, objects: dict[str, tuple[bytes, str]] | None = None) -> None:
    self.objects: dict[str, tuple[bytes, str]] = dict(objects or {})
    self.uploads: list[tuple[str, bytes, str]] = []

  async def download(self, object_name: str) -> tuple[bytes, StorageObjectMetadata]:
    if object_name not in self.objects:
      raise ObjectNotFound(object_name, "object not found")
    data, content_type = self.objects[object_name]
    return data, StorageObjectMetadata(content_type=content_type, cache_control=None, size=len(data))

  async def upload(self, data: bytes, object_name: str, *, content_type: str) -> None:
    self.uploads.append((object_name, data, content_type))
    self.objects[object_name] = (data, content_type)


@pytest.fixture
def settings() -> Settings:
  return replace(
    get_settings(),
    internal_api_secret="internal-secret",
    internal_api_base_url="http://api.internal",
    frontend_base_url="http://frontend.internal",
    browser_ws_endpoint=None,
    task_secret="test-task-secret",
    download_token_ttl_seconds=60,
    pdf_rate_limit_per_hour=2,
    preview_rate_limit_per_hour=2,
    login_rate_limit_per_hour=10,
    login_lock_threshold=3,
    login_lock_ttl_seconds=900,
    job_max_attempts=3,
  )


@pytest.fixture
def documents_repo() -> InMemoryDocumentsRepo:
  return InMemoryDocumentsRepo()


@pytest.fixture
def publisher() -> RecordingPublisher:
  return RecordingPublisher()


@pytest.fixture
def enqueuer() -> RecordingEnqueuer:
  return RecordingEnqueuer()


@pytest.fixture
def object_store() -> FakeObjectStore:
  return FakeObjectStore()


@pytest.fixture
async def fake_redis() -> Any:
  client = fakeredis.FakeAsyncRedis(server=fakeredis.FakeServer())
  yield client
  await client.aclose()


@pytest.fixture
async def api_client(settings, documents_repo, enqueuer, object_store, fake_redis):
  """App client with every external collaborator replaced; identity is overridable per test."""
  from folio.api.deps import get_documents_repo, get_enqueuer, get_redis_client, get_storage_client
  from folio.main import app

  app.dependency_overrides[get_settings] = lambda: settings
  app.dependency_overrides[get_documents_repo] = lambda: documents_repo
  app.dependency_overrides[get_enqueuer] = lambda: enqueuer
  app.dependency_overrides[get_storage_client] = lambda: object_store
  app.dependency_overrides[get_redis_client] = lambda: fake_redis
  async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
    yield client
  app.dependency_overrides.clear()
