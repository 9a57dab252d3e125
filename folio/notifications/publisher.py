"""Publish job outcomes to per-user Redis channels."""

from __future__ import annotations

import asyncio
import logging
from typing import Protocol

from redis.asyncio import Redis

from folio.notifications.contracts import NotificationEvent, user_channel

logger = logging.getLogger(__name__)


class NotificationPublisher(Protocol):
  """Outcome sink used by the job processor."""

  def publish(self, owner_id: str, event: NotificationEvent) -> None:
    """Schedule delivery without waiting for it."""

  async def publish_now(self, owner_id: str, event: NotificationEvent) -> int:
    """Deliver and return the number of live subscribers that received it."""


class RedisNotificationPublisher:
  """Redis pub/sub publisher; `publish` never blocks the caller on the network."""

  def __init__(self, redis: Redis) -> None:
    self._redis = redis
    self._pending: set[asyncio.Task[int]] = set()

  async def publish_now(self, owner_id: str, event: NotificationEvent) -> int:
    channel = user_channel(owner_id)
    receivers = int(await self._redis.publish(channel, event.encode()))
    logger.info("Published notification channel=%s status=%s target_id=%s correlation_id=%s receivers=%s", channel, event.status, event.target_id, event.correlation_id, receivers)
    return receivers

  def publish(self, owner_id: str, event: NotificationEvent) -> None:
    task = asyncio.create_task(self.publish_now(owner_id, event))
    self._pending.add(task)
    task.add_done_callback(self._pending.discard)
    task.add_done_callback(self._log_task_error)

  async def drain(self) -> None:
    """Wait for scheduled publishes; used before the worker's event loop shuts down."""
    if self._pending:
      await asyncio.gather(*list(self._pending), return_exceptions=True)

  @staticmethod
  def _log_task_error(task: asyncio.Task[int]) -> None:
    """Log background publish failures so they are never silent."""
    if task.cancelled():
      return
    exc = task.exception()
    if exc is not None:
      logger.error("Notification publish failed: %s", exc, exc_info=exc)

