from __future__ import annotations

import asyncio

import pytest

from folio.jobs.models import DocumentKind
from folio.services.download_tokens import DOWNLOAD_EXPIRED_DETAIL, DownloadLinkExpired, DownloadTokenIssuer


@pytest.fixture
def issuer(fake_redis) -> DownloadTokenIssuer:
  return DownloadTokenIssuer(fake_redis, ttl_seconds=60)


@pytest.mark.anyio
async def test_issued_token_is_single_use(issuer) -> None:
  issued = await issuer.issue("7", DocumentKind.RESUME, 42)
  assert issued.expires_in == 60
  assert issued.owner_id == "7"

  await issuer.consume("7", DocumentKind.RESUME, 42, issued.token)
  with pytest.raises(DownloadLinkExpired) as exc_info:
    await issuer.consume("7", DocumentKind.RESUME, 42, issued.token)
  assert str(exc_info.value) == DOWNLOAD_EXPIRED_DETAIL


@pytest.mark.anyio
async def test_token_is_bound_to_owner_and_target(issuer) -> None:
  issued = await issuer.issue("7", DocumentKind.RESUME, 42)

  for owner, kind, target in (("8", DocumentKind.RESUME, 42), ("7", DocumentKind.RESUME, 43), ("7", DocumentKind.TEMPLATE, 42)):
    with pytest.raises(DownloadLinkExpired):
      await issuer.consume(owner, kind, target, issued.token)

  # Mismatched presentations do not burn the token.
  await issuer.consume("7", DocumentKind.RESUME, 42, issued.token)


@pytest.mark.anyio
async def test_expired_token_is_rejected_like_a_consumed_one(issuer, fake_redis) -> None:
  issued = await issuer.issue("7", DocumentKind.RESUME, 42)
  assert 0 < await fake_redis.pttl(f"dl:{issued.token}") <= 60_000
  await fake_redis.pexpire(f"dl:{issued.token}", 1)
  await asyncio.sleep(0.05)

  with pytest.raises(DownloadLinkExpired) as exc_info:
    await issuer.consume("7", DocumentKind.RESUME, 42, issued.token)
  assert str(exc_info.value) == DOWNLOAD_EXPIRED_DETAIL


@pytest.mark.anyio
@pytest.mark.parametrize("token", ["", "unknown-token", "x" * 500])
async def test_unknown_or_malformed_tokens_are_rejected(issuer, token) -> None:
  with pytest.raises(DownloadLinkExpired):
    await issuer.consume("7", DocumentKind.RESUME, 42, token)


@pytest.mark.anyio
async def test_concurrent_consumers_have_exactly_one_winner(issuer) -> None:
  issued = await issuer.issue("7", DocumentKind.RESUME, 42)
  results = await asyncio.gather(*(issuer.consume("7", DocumentKind.RESUME, 42, issued.token) for _ in range(5)), return_exceptions=True)
  assert sum(1 for result in results if result is None) == 1
  assert all(isinstance(result, DownloadLinkExpired) for result in results if result is not None)


@pytest.mark.anyio
async def test_ttl_must_be_positive(fake_redis) -> None:
  with pytest.raises(ValueError):
    DownloadTokenIssuer(fake_redis, ttl_seconds=0)
