"""Single-use, short-lived tokens that authorise one artifact download without a bearer token."""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass

from redis.asyncio import Redis

from folio.jobs.models import DocumentKind

logger = logging.getLogger(__name__)

DOWNLOAD_EXPIRED_DETAIL = "Download link expired"
TOKEN_BYTES = 32
MAX_TOKEN_LENGTH = 128

# Check binding and consumed flag, then flip it, in one step so two concurrent fetches cannot both win.
_CONSUME_SCRIPT = """
if redis.call('EXISTS', KEYS[1]) == 0 then
  return 0
end
local fields = redis.call('HMGET', KEYS[1], 'owner', 'kind', 'target', 'consumed')
if fields[1] ~= ARGV[1] or fields[2] ~= ARGV[2] or fields[3] ~= ARGV[3] then
  return 0
end
if fields[4] ~= '0' then
  return 0
end
redis.call('HSET', KEYS[1], 'consumed', '1')
return 1
"""


class DownloadLinkExpired(Exception):
  """Raised for every rejected token, whatever the underlying reason."""

  def __init__(self) -> None:
    super().__init__(DOWNLOAD_EXPIRED_DETAIL)


@dataclass(frozen=True)
class IssuedToken:
  token: str
  owner_id: str
  expires_in: int


def _token_key(token: str) -> str:
  return f"dl:{token}"


class DownloadTokenIssuer:
  """Mints tokens bound to (owner, kind, target) and consumes them at most once."""

  def __init__(self, redis: Redis, *, ttl_seconds: int) -> None:
    if ttl_seconds <= 0:
      raise ValueError("ttl_seconds must be positive")
    self._redis = redis
    self._ttl_ms = ttl_seconds * 1000
    self._ttl_seconds = ttl_seconds
    self._consume = redis.register_script(_CONSUME_SCRIPT)

  async def issue(self, owner_id: str, kind: DocumentKind, target_id: int) -> IssuedToken:
    token = secrets.token_urlsafe(TOKEN_BYTES)
    key = _token_key(token)
    async with self._redis.pipeline(transaction=True) as pipe:
      pipe.hset(key, mapping={"owner": owner_id, "kind": str(kind), "target": str(target_id), "consumed": "0"})
      pipe.pexpire(key, self._ttl_ms)
      await pipe.execute()
    logger.info("Issued download token kind=%s target_id=%s ttl=%ss", kind, target_id, self._ttl_seconds)
    return IssuedToken(token=token, owner_id=owner_id, expires_in=self._ttl_seconds)

  async def consume(self, owner_id: str, kind: DocumentKind, target_id: int, token: str) -> None:
    """Mark the token consumed or raise DownloadLinkExpired; the record stays until its TTL so replays still fail."""
    if not token or len(token) > MAX_TOKEN_LENGTH or not owner_id:
      raise DownloadLinkExpired()
    accepted = await self._consume(keys=[_token_key(token)], args=[owner_id, str(kind), str(target_id)])
    if int(accepted) != 1:
      raise DownloadLinkExpired()
