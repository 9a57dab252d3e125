"""Object storage helper for user assets and generated artifacts."""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import urlparse, urlunparse

from google.api_core import exceptions as gcs_exceptions
from google.auth.credentials import AnonymousCredentials
from google.cloud import storage
from starlette.concurrency import run_in_threadpool

from folio.config import Settings


class StorageError(Exception):
  """Base class for object lookups that failed for a known reason."""

  def __init__(self, object_name: str, message: str) -> None:
    super().__init__(f"{message}: {object_name}")
    self.object_name = object_name


class ObjectNotFound(StorageError):
  pass


class ObjectForbidden(StorageError):
  pass


@dataclass(frozen=True)
class StorageObjectMetadata:
  """Metadata returned for a downloaded storage object."""

  content_type: str | None
  cache_control: str | None
  size: int | None


class StorageClient:
  """Thin wrapper over GCS and emulator access for asset download and artifact upload."""

  def __init__(self, settings: Settings) -> None:
    self._bucket_name = settings.storage_bucket
    self._storage_host = settings.gcs_storage_host
    # Ensure emulator endpoint is visible to the SDK in local development.
    if self._storage_host:
      emulator_endpoint = _normalize_emulator_endpoint(self._storage_host)
      os.environ["GCS_STORAGE_EMULATOR_HOST"] = emulator_endpoint
      self._client = storage.Client(project=settings.gcp_project_id or "local-dev", credentials=AnonymousCredentials(), client_options={"api_endpoint": emulator_endpoint})
    else:
      self._client = storage.Client(project=settings.gcp_project_id)

  @property
  def bucket_name(self) -> str:
    return self._bucket_name

  async def ensure_bucket(self) -> None:
    """Create the default bucket when missing in local/dev flows."""
    # Only auto-create in emulator mode.
    if not self._storage_host:
      return
    bucket = self._client.bucket(self._bucket_name)

    def _create_if_missing() -> None:
      if not bucket.exists(client=self._client):
        self._client.create_bucket(bucket)

    await run_in_threadpool(_create_if_missing)

  async def upload(self, data: bytes, object_name: str, *, content_type: str, cache_control: str = "private, max-age=0, no-cache") -> None:
    """Upload bytes, replacing any existing object with the same name."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    blob.cache_control = cache_control
    blob.content_type = content_type
    await run_in_threadpool(blob.upload_from_string, data, content_type)

  async def download(self, object_name: str) -> tuple[bytes, StorageObjectMetadata]:
    """Download object bytes and return content metadata."""
    bucket = self._client.bucket(self._bucket_name)
    blob = bucket.blob(object_name)
    try:
      data = await run_in_threadpool(blob.download_as_bytes)
    except gcs_exceptions.NotFound as exc:
      raise ObjectNotFound(object_name, "object not found") from exc
    except gcs_exceptions.Forbidden as exc:
      raise ObjectForbidden(object_name, "object access denied") from exc
    except gcs_exceptions.GoogleAPICallError as exc:
      raise StorageError(object_name, "object download failed") from exc
    metadata = StorageObjectMetadata(content_type=blob.content_type, cache_control=blob.cache_control, size=blob.size)
    return data, metadata


def build_storage_client(settings: Settings) -> StorageClient:
  """Create a storage client instance with environment-aware credentials."""
  return StorageClient(settings)


def _normalize_emulator_endpoint(raw_endpoint: str) -> str:
  """Normalize emulator endpoint so the SDK receives scheme+host+port only."""
  parsed = urlparse(raw_endpoint)
  if not parsed.scheme or not parsed.netloc:
    return raw_endpoint.rstrip("/")
  return urlunparse((parsed.scheme, parsed.netloc, "", "", "", "")).rstrip("/")
