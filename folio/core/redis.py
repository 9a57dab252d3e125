"""Process-wide async Redis client shared by the limiter, tokens, and notifications."""

from __future__ import annotations

import logging

from redis.asyncio import Redis

from folio.config import get_settings

logger = logging.getLogger(__name__)

_client: Redis | None = None


def get_redis() -> Redis:
  """Return the shared client, creating it on first use."""
  global _client
  if _client is None:
    settings = get_settings()
    _client = Redis.from_url(settings.redis_url, decode_responses=False, health_check_interval=30)
  return _client


async def close_redis() -> None:
  global _client
  if _client is None:
    return
  client, _client = _client, None
  try:
    await client.aclose()
  except Exception:  # noqa: BLE001
    logger.warning("Redis client close failed", exc_info=True)
