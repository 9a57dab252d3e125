"""Shared FastAPI dependencies for auth, rate limiting, and pipeline collaborators."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Awaitable, Callable
from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Header, HTTPException, status
from redis.asyncio import Redis

from folio.config import Settings, get_settings
from folio.core.redis import get_redis
from folio.core.security import Identity, get_current_identity
from folio.rendering.assembler import PrintDataAssembler
from folio.services.download_tokens import DownloadTokenIssuer
from folio.services.rate_limit import LoginThrottle, RateLimiter, RateLimitResult, action_rules, build_login_throttle
from folio.services.storage_client import StorageClient, build_storage_client
from folio.services.tasks.factory import get_task_enqueuer
from folio.services.tasks.interface import TaskEnqueuer
from folio.storage.documents_repo import DocumentsRepository
from folio.storage.postgres_documents_repo import build_documents_repo

logger = logging.getLogger(__name__)


def get_redis_client() -> Redis:
  return get_redis()


def get_documents_repo() -> DocumentsRepository:
  return build_documents_repo()


@lru_cache
def _cached_storage_client() -> StorageClient:
  return build_storage_client(get_settings())


def get_storage_client() -> StorageClient:
  """Reuse one storage client per process; the SDK client is thread-safe."""
  return _cached_storage_client()


def get_assembler(storage: Annotated[StorageClient, Depends(get_storage_client)]) -> PrintDataAssembler:
  return PrintDataAssembler(storage)


def get_rate_limiter(redis: Annotated[Redis, Depends(get_redis_client)]) -> RateLimiter:
  return RateLimiter(redis)


def get_login_throttle(redis: Annotated[Redis, Depends(get_redis_client)], settings: Annotated[Settings, Depends(get_settings)]) -> LoginThrottle:
  return build_login_throttle(redis, settings)


def get_token_issuer(redis: Annotated[Redis, Depends(get_redis_client)], settings: Annotated[Settings, Depends(get_settings)]) -> DownloadTokenIssuer:
  return DownloadTokenIssuer(redis, ttl_seconds=settings.download_token_ttl_seconds)


def get_enqueuer(settings: Annotated[Settings, Depends(get_settings)]) -> TaskEnqueuer:
  return get_task_enqueuer(settings)


QuotaCharge = Callable[[], Awaitable[RateLimitResult]]


def rate_limited(action: str) -> Callable[..., Awaitable[QuotaCharge]]:
  """Dependency factory returning a charge that counts one `action` against the caller's hourly cap.

  Routes call the charge once the request has passed its ownership checks, so rejected requests cost nothing.
  """

  async def _provide(identity: Annotated[Identity, Depends(get_current_identity)], limiter: Annotated[RateLimiter, Depends(get_rate_limiter)], settings: Annotated[Settings, Depends(get_settings)]) -> QuotaCharge:
    rule = action_rules(settings)[action]

    async def _charge() -> RateLimitResult:
      return await limiter.enforce(rule, identity.uid)

    return _charge

  return _provide


async def require_internal_secret(settings: Annotated[Settings, Depends(get_settings)], x_internal_secret: Annotated[str | None, Header()] = None) -> None:
  """Guard internal endpoints with the shared secret header; query parameters are never consulted."""
  if not settings.internal_api_secret:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Internal access is not configured.")
  if not secrets.compare_digest((x_internal_secret or "").encode("utf-8"), settings.internal_api_secret.encode("utf-8")):
    logger.warning("Rejected internal request with missing or invalid secret")
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid internal secret.")
