import json
import logging
import time
import uuid
from typing import Any

from starlette.datastructures import MutableHeaders
from starlette.types import ASGIApp, Message, Receive, Scope, Send

from folio.config import get_settings

logger = logging.getLogger("folio.core.middleware")

CORRELATION_HEADER = "x-correlation-id"
_SENSITIVE_KEYS = {"password", "token", "authorization", "cookie", "secret", "internal_token", "x-internal-secret"}
_SENSITIVE_QUERY_KEYS = {"token", "internal_token"}


def _redact_sensitive_keys(data: Any) -> Any:
  """Redact sensitive keys from a dictionary or list recursively."""
  if isinstance(data, dict):
    return {k: ("***" if str(k).lower() in _SENSITIVE_KEYS else _redact_sensitive_keys(v)) for k, v in data.items()}
  if isinstance(data, list):
    return [_redact_sensitive_keys(item) for item in data]
  return data


def _normalize_headers(scope: Scope) -> dict[str, str]:
  """Normalize scope headers into a lower-cased mapping."""
  return {key.decode("latin-1").lower(): value.decode("latin-1") for key, value in scope.get("headers", [])}


def _build_request_url(scope: Scope) -> str:
  """Build a loggable path, masking download tokens in the query string."""
  path = scope.get("path", "")
  query_string = scope.get("query_string", b"").decode("latin-1")
  if not query_string:
    return path

  parts: list[str] = []
  for pair in query_string.split("&"):
    key, sep, _ = pair.partition("=")
    if sep and key.lower() in _SENSITIVE_QUERY_KEYS:
      parts.append(f"{key}=***")
    else:
      parts.append(pair)
  return f"{path}?{'&'.join(parts)}"


def _is_textual_content_type(content_type: str | None) -> bool:
  if not content_type:
    return False
  normalized = content_type.lower()
  return "application/json" in normalized or normalized.endswith("+json") or normalized.startswith("text/")


def _format_body_for_log(body: bytes, content_type: str | None, max_bytes: int) -> str:
  """Format a request/response body for logging with redaction."""
  if not body:
    return "<empty>"
  if not _is_textual_content_type(content_type):
    return f"<non-text body {len(body)} bytes>"
  if len(body) > max_bytes:
    return f"{body[:max_bytes].decode('utf-8', errors='replace')}...(truncated)"

  text = body.decode("utf-8", errors="replace")
  if content_type and "json" in content_type.lower():
    try:
      parsed = json.loads(text)
    except json.JSONDecodeError:
      return text
    return json.dumps(_redact_sensitive_keys(parsed), ensure_ascii=True)
  return text


def new_correlation_id() -> str:
  return uuid.uuid4().hex


class RequestLoggingMiddleware:
  """Log request/response details while preserving body streams for downstream handlers."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    # Websocket and lifespan scopes pass through untouched.
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    settings = get_settings()
    log_http_bodies = settings.log_http_bodies
    max_body_bytes = settings.log_http_body_bytes

    request_id = str(uuid.uuid4())
    scope.setdefault("state", {})["request_id"] = request_id

    start_time = time.time()
    method = scope.get("method", "UNKNOWN")
    url = _build_request_url(scope)
    logger.info("Incoming request request_id=%s %s %s", request_id, method, url)
    headers = _normalize_headers(scope)
    content_type = headers.get("content-type")

    receive_wrapper = receive
    if log_http_bodies:
      # Drain the body once, log it, then replay it downstream.
      body_chunks: list[bytes] = []
      more_body = True
      while more_body:
        message = await receive()
        if message.get("type") != "http.request":
          break
        body_chunks.append(message.get("body", b""))
        more_body = message.get("more_body", False)
      request_body = b"".join(body_chunks)
      body_sent = False

      async def receive_wrapper() -> Message:
        nonlocal body_sent
        if body_sent:
          return {"type": "http.request", "body": b"", "more_body": False}
        body_sent = True
        return {"type": "http.request", "body": request_body, "more_body": False}

      if request_body:
        logger.info("Request body request_id=%s body=%s", request_id, _format_body_for_log(request_body, content_type, max_body_bytes))

    status_code: int | None = None

    async def send_wrapper(message: Message) -> None:
      nonlocal status_code
      if message.get("type") == "http.response.start":
        status_code = message.get("status")
        response_headers = MutableHeaders(scope=message)
        if "x-request-id" not in response_headers:
          response_headers["x-request-id"] = request_id
      await send(message)

    await self.app(scope, receive_wrapper, send_wrapper)

    process_time = (time.time() - start_time) * 1000
    logger.info("Response request_id=%s status=%s (took %.2fms)", request_id, status_code or 0, process_time)


class CorrelationIdMiddleware:
  """Thread a client-supplied correlation id through request state and the response headers."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] not in {"http", "websocket"}:
      await self.app(scope, receive, send)
      return

    headers = _normalize_headers(scope)
    correlation_id = (headers.get(CORRELATION_HEADER) or "").strip()[:128] or new_correlation_id()
    scope.setdefault("state", {})["correlation_id"] = correlation_id

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        MutableHeaders(scope=message)[CORRELATION_HEADER] = correlation_id
      await send(message)

    await self.app(scope, receive, send_wrapper)


class SecurityHeadersMiddleware:
  """Strip server fingerprints and add baseline hardening headers."""

  def __init__(self, app: ASGIApp) -> None:
    self.app = app

  async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
    if scope["type"] != "http":
      await self.app(scope, receive, send)
      return

    async def send_wrapper(message: Message) -> None:
      if message["type"] == "http.response.start":
        headers = MutableHeaders(scope=message)
        for name in ("x-powered-by", "server"):
          if name in headers:
            del headers[name]
        headers.setdefault("x-content-type-options", "nosniff")
        headers.setdefault("referrer-policy", "no-referrer")
      await send(message)

    await self.app(scope, receive, send_wrapper)
