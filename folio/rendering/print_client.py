"""Fetch assembled print data from the internal API for the render worker."""

from __future__ import annotations

import logging

import httpx

from folio.config import Settings
from folio.jobs.errors import FatalJobError, TargetGone, TransientJobError
from folio.jobs.models import DocumentKind
from folio.rendering.payload import RenderPayload, decode_payload

logger = logging.getLogger(__name__)

INTERNAL_SECRET_HEADER = "X-Internal-Secret"
FETCH_TIMEOUT_SECONDS = 15.0
MAX_ERROR_BODY_BYTES = 8 * 1024

_PRINT_PATHS = {DocumentKind.RESUME: "resume/print", DocumentKind.TEMPLATE: "templates/print"}


def print_data_path(kind: DocumentKind, target_id: int) -> str:
  return f"/internal/v1/{_PRINT_PATHS[kind]}/{target_id}"


class PrintDataClient:
  """GET the print payload with the shared secret carried in a header, never the URL."""

  def __init__(self, settings: Settings, *, transport: httpx.AsyncBaseTransport | None = None) -> None:
    self._base_url = settings.internal_api_base_url
    self._secret = settings.internal_api_secret
    self._transport = transport

  def _build_client(self) -> httpx.AsyncClient:
    # Internal calls never go through environment proxies.
    return httpx.AsyncClient(base_url=self._base_url, transport=self._transport, timeout=FETCH_TIMEOUT_SECONDS, trust_env=False)

  async def fetch(self, kind: DocumentKind, target_id: int) -> RenderPayload:
    if not self._secret:
      raise FatalJobError("internal api secret missing")

    path = print_data_path(kind, target_id)
    try:
      async with self._build_client() as client:
        response = await client.get(path, headers={INTERNAL_SECRET_HEADER: self._secret, "Accept": "application/json"})
    except httpx.HTTPError as exc:
      raise TransientJobError(f"print data request failed for {path}: {exc}") from exc

    if response.status_code == httpx.codes.NOT_FOUND:
      raise TargetGone(f"print data not found for {path}")
    if not response.is_success:
      body = response.content[:MAX_ERROR_BODY_BYTES].decode("utf-8", errors="replace")
      message = f"print data request {path} returned {response.status_code}: {body}"
      # Client errors other than throttling will not change on retry.
      if 400 <= response.status_code < 500 and response.status_code != httpx.codes.TOO_MANY_REQUESTS:
        raise FatalJobError(message)
      raise TransientJobError(message)

    logger.debug("Fetched print data path=%s bytes=%d", path, len(response.content))
    return decode_payload(response.content)
