from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from folio.api.routes import auth, documents, print_data, tasks, ws
from folio.config import get_settings
from folio.core.exceptions import (
  download_expired_exception_handler,
  global_exception_handler,
  http_exception_handler,
  locked_out_exception_handler,
  rate_limited_exception_handler,
  request_validation_exception_handler,
)
from folio.core.json import CompactJSONResponse
from folio.core.lifespan import lifespan
from folio.core.middleware import CorrelationIdMiddleware, RequestLoggingMiddleware, SecurityHeadersMiddleware
from folio.services.download_tokens import DownloadLinkExpired
from folio.services.rate_limit import LockedOut, RateLimited

settings = get_settings()

app = FastAPI(default_response_class=CompactJSONResponse, lifespan=lifespan, docs_url=None, redoc_url=None, openapi_url=None)

app.add_middleware(
  CORSMiddleware,
  allow_origins=list(settings.allowed_origins),
  allow_credentials=True,
  allow_methods=["GET", "POST", "OPTIONS"],
  allow_headers=["content-type", "authorization", "x-correlation-id"],
  expose_headers=["content-length", "content-disposition", "x-correlation-id", "retry-after"],
)


# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
app.add_exception_handler(DownloadLinkExpired, download_expired_exception_handler)
app.add_exception_handler(RateLimited, rate_limited_exception_handler)
app.add_exception_handler(LockedOut, locked_out_exception_handler)

# Add middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(CorrelationIdMiddleware)
app.add_middleware(SecurityHeadersMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": "0.1.0"}


app.include_router(documents.router, prefix="/v1", tags=["documents"])
app.include_router(auth.router, prefix="/v1/auth", tags=["auth"])
app.include_router(ws.router, prefix="/v1", tags=["notifications"])
app.include_router(print_data.router, prefix="/internal", tags=["internal"])
app.include_router(tasks.router, prefix="/internal", tags=["tasks"])
