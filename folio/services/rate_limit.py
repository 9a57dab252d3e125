"""Hourly action caps and login lockout backed by atomic Redis scripts."""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass

from redis.asyncio import Redis

from folio.config import Settings

logger = logging.getLogger(__name__)

HOUR_SECONDS = 3600

# INCR and EXPIRE run as one unit so a crash between them cannot leave a counter without a TTL.
_HIT_SCRIPT = """
local count = redis.call('INCR', KEYS[1])
if count == 1 then
  redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
end
local ttl = redis.call('TTL', KEYS[1])
if ttl < 0 then
  redis.call('EXPIRE', KEYS[1], tonumber(ARGV[1]))
  ttl = tonumber(ARGV[1])
end
return {count, ttl}
"""

_FAILURE_SCRIPT = """
local failures = redis.call('INCR', KEYS[1])
if failures == 1 then
  redis.call('EXPIRE', KEYS[1], tonumber(ARGV[2]))
end
if failures >= tonumber(ARGV[1]) then
  redis.call('SET', KEYS[2], '1', 'EX', tonumber(ARGV[2]))
  redis.call('DEL', KEYS[1])
  return {failures, 1}
end
return {failures, 0}
"""


class RateLimited(Exception):
  def __init__(self, action: str, retry_after: int) -> None:
    super().__init__(f"rate limit exceeded for {action}")
    self.action = action
    self.retry_after = retry_after


class LockedOut(Exception):
  def __init__(self, identity: str, retry_after: int) -> None:
    super().__init__("identity is locked out")
    self.identity = identity
    self.retry_after = retry_after


@dataclass(frozen=True)
class RateLimitRule:
  action: str
  limit: int
  window_seconds: int = HOUR_SECONDS


@dataclass(frozen=True)
class RateLimitResult:
  allowed: bool
  count: int
  limit: int
  retry_after: int

  @property
  def remaining(self) -> int:
    return max(self.limit - self.count, 0)


def _normalize_identity(identity: str) -> str:
  return identity.strip().lower()


class RateLimiter:
  """Fixed-bucket counters keyed by action, identity and window index."""

  def __init__(self, redis: Redis, *, clock: Callable[[], float] = time.time) -> None:
    self._redis = redis
    self._clock = clock
    self._hit = redis.register_script(_HIT_SCRIPT)

  def key_for(self, rule: RateLimitRule, identity: str) -> str:
    bucket = int(self._clock() // rule.window_seconds)
    return f"rl:{rule.action}:{_normalize_identity(identity)}:{bucket}"

  async def hit(self, rule: RateLimitRule, identity: str) -> RateLimitResult:
    """Count one attempt and report whether it fits inside the window."""
    count, ttl = await self._hit(keys=[self.key_for(rule, identity)], args=[rule.window_seconds])
    count, ttl = int(count), int(ttl)
    allowed = count <= rule.limit
    if not allowed:
      logger.info("Rate limit hit action=%s count=%s limit=%s", rule.action, count, rule.limit)
    return RateLimitResult(allowed=allowed, count=count, limit=rule.limit, retry_after=0 if allowed else max(ttl, 1))

  async def check(self, rule: RateLimitRule, identity: str) -> RateLimitResult:
    """Peek at the current window without counting."""
    key = self.key_for(rule, identity)
    raw = await self._redis.get(key)
    count = int(raw) if raw is not None else 0
    allowed = count < rule.limit
    retry_after = 0
    if not allowed:
      retry_after = max(int(await self._redis.ttl(key)), 1)
    return RateLimitResult(allowed=allowed, count=count, limit=rule.limit, retry_after=retry_after)

  async def enforce(self, rule: RateLimitRule, identity: str) -> RateLimitResult:
    result = await self.hit(rule, identity)
    if not result.allowed:
      raise RateLimited(rule.action, result.retry_after)
    return result


class LoginThrottle:
  """Consecutive-failure lockout layered in front of the hourly login cap."""

  def __init__(self, limiter: RateLimiter, redis: Redis, *, rule: RateLimitRule, lock_threshold: int, lock_ttl_seconds: int) -> None:
    self._limiter = limiter
    self._redis = redis
    self._rule = rule
    self._lock_threshold = lock_threshold
    self._lock_ttl_seconds = lock_ttl_seconds
    self._record_failure = redis.register_script(_FAILURE_SCRIPT)

  @staticmethod
  def lock_key(identity: str) -> str:
    return f"lock:login:{_normalize_identity(identity)}"

  @staticmethod
  def failure_key(identity: str) -> str:
    return f"fail:login:{_normalize_identity(identity)}"

  async def lock_remaining(self, identity: str) -> int:
    """Seconds left on an active lock, or 0."""
    ttl_ms = int(await self._redis.pttl(self.lock_key(identity)))
    if ttl_ms == -1:
      return self._lock_ttl_seconds
    if ttl_ms <= 0:
      return 0
    return math.ceil(ttl_ms / 1000)

  async def ensure_allowed(self, identity: str) -> RateLimitResult:
    """Reject locked identities before touching the hourly counter, then count the attempt."""
    remaining = await self.lock_remaining(identity)
    if remaining > 0:
      raise LockedOut(identity, remaining)
    return await self._limiter.enforce(self._rule, identity)

  async def record_failure(self, identity: str) -> bool:
    """Count a failed attempt; returns True when this failure triggered the lock."""
    failures, locked = await self._record_failure(keys=[self.failure_key(identity), self.lock_key(identity)], args=[self._lock_threshold, self._lock_ttl_seconds])
    if int(locked):
      logger.warning("Login locked after %s consecutive failures for %s seconds", failures, self._lock_ttl_seconds)
    return bool(int(locked))

  async def record_success(self, identity: str) -> None:
    await self._redis.delete(self.failure_key(identity))


def action_rules(settings: Settings) -> dict[str, RateLimitRule]:
  """Per-hour caps for the actions that share the limiter."""
  return {
    "login": RateLimitRule("login", settings.login_rate_limit_per_hour),
    "pdf": RateLimitRule("pdf", settings.pdf_rate_limit_per_hour),
    "preview": RateLimitRule("preview", settings.preview_rate_limit_per_hour),
    "upload": RateLimitRule("upload", settings.upload_rate_limit_per_hour),
  }


def build_login_throttle(redis: Redis, settings: Settings) -> LoginThrottle:
  limiter = RateLimiter(redis)
  return LoginThrottle(limiter, redis, rule=action_rules(settings)["login"], lock_threshold=settings.login_lock_threshold, lock_ttl_seconds=settings.login_lock_ttl_seconds)
