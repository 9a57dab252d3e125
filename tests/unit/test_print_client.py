from __future__ import annotations

from dataclasses import replace

import httpx
import msgspec
import pytest

from folio.jobs.errors import FatalJobError, TargetGone, TransientJobError
from folio.jobs.models import DocumentKind
from folio.rendering.print_client import INTERNAL_SECRET_HEADER, PrintDataClient, print_data_path


def _client(settings, handler) -> PrintDataClient:
  return PrintDataClient(settings, transport=httpx.MockTransport(handler))


@pytest.mark.anyio
async def test_fetch_sends_secret_in_header_only(settings) -> None:
  seen: list[httpx.Request] = []

  def handler(request: httpx.Request) -> httpx.Response:
    seen.append(request)
    return httpx.Response(200, content=msgspec.json.encode({"items": [{"id": "t", "type": "text", "content": "x"}]}))

  payload = await _client(settings, handler).fetch(DocumentKind.RESUME, 42)

  assert payload.items[0].id == "t"
  request = seen[0]
  assert request.url.path == "/internal/v1/resume/print/42"
  assert request.url.query == b""
  assert request.headers[INTERNAL_SECRET_HEADER] == "internal-secret"


def test_print_data_path_per_kind() -> None:
  assert print_data_path(DocumentKind.TEMPLATE, 5) == "/internal/v1/templates/print/5"


@pytest.mark.anyio
@pytest.mark.parametrize(("status_code", "error"), [(404, TargetGone), (401, FatalJobError), (422, FatalJobError), (429, TransientJobError), (502, TransientJobError)])
async def test_fetch_maps_status_codes(settings, status_code, error) -> None:
  client = _client(settings, lambda request: httpx.Response(status_code, text="nope"))
  with pytest.raises(error):
    await client.fetch(DocumentKind.RESUME, 1)


@pytest.mark.anyio
async def test_connection_errors_are_transient(settings) -> None:
  def handler(request: httpx.Request) -> httpx.Response:
    raise httpx.ConnectError("connection refused", request=request)

  with pytest.raises(TransientJobError):
    await _client(settings, handler).fetch(DocumentKind.RESUME, 1)


@pytest.mark.anyio
async def test_missing_secret_is_fatal(settings) -> None:
  client = _client(replace(settings, internal_api_secret=None), lambda request: httpx.Response(200))
  with pytest.raises(FatalJobError):
    await client.fetch(DocumentKind.RESUME, 1)
