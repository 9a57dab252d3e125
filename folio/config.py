"""Application configuration loaded from environment variables."""

from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache

from folio.utils.env import default_env_path, load_env_file

load_env_file(default_env_path(), override=False)

_DEFAULT_ORIGINS = ("http://localhost:3000",)
_TASK_PROVIDERS = {"celery", "local-http", "inline"}


@dataclass(frozen=True)
class RenderTimeouts:
  """Upper bounds (seconds) for each blocking step of a render session."""

  connect: float = 30.0
  navigate: float = 45.0
  load: float = 90.0
  inject: float = 10.0
  ready: float = 30.0
  fonts: float = 5.0
  cleanup: float = 30.0
  teardown: float = 5.0


@dataclass(frozen=True)
class Settings:
  """Typed settings for the Folio document service."""

  environment: str
  debug: bool
  allowed_origins: tuple[str, ...]
  log_level: str
  log_max_bytes: int
  log_backup_count: int
  log_http_4xx: bool
  log_http_bodies: bool
  log_http_body_bytes: int
  pg_dsn: str | None
  pg_connect_timeout: int
  redis_url: str
  broker_url: str
  storage_bucket: str
  gcs_storage_host: str | None
  gcp_project_id: str | None
  firebase_project_id: str | None
  firebase_service_account_json_path: str | None
  internal_api_secret: str | None
  internal_api_base_url: str
  frontend_base_url: str
  browser_ws_endpoint: str | None
  task_service_provider: str
  task_secret: str | None
  base_url: str | None
  worker_concurrency: int
  job_max_attempts: int
  job_backoff_base_seconds: float
  job_backoff_max_seconds: float
  download_token_ttl_seconds: int
  login_rate_limit_per_hour: int
  login_lock_threshold: int
  login_lock_ttl_seconds: int
  pdf_rate_limit_per_hour: int
  preview_rate_limit_per_hour: int
  upload_rate_limit_per_hour: int
  render_timeouts: RenderTimeouts = field(default_factory=RenderTimeouts)


@dataclass(frozen=True)
class DatabaseSettings:
  """Subset of settings needed to open database connections."""

  debug: bool
  pg_dsn: str | None
  pg_connect_timeout: int


def _parse_origins(raw: str | None) -> tuple[str, ...]:
  if not raw:
    return _DEFAULT_ORIGINS
  origins = tuple(origin.strip() for origin in raw.split(",") if origin.strip())
  return origins or _DEFAULT_ORIGINS


def _parse_bool(raw: str | None, default: bool = False) -> bool:
  if raw is None:
    return default
  return raw.strip().lower() in {"1", "true", "yes", "on"}


def _parse_int(raw: str | None, default: int, *, name: str, minimum: int = 1) -> int:
  """Parse an integer env value and enforce a lower bound."""
  if raw is None or raw.strip() == "":
    return default
  value = int(raw)
  if value < minimum:
    raise ValueError(f"{name} must be >= {minimum}.")
  return value


def _parse_seconds(raw: str | None, default: float, *, name: str) -> float:
  """Parse a positive duration in seconds (fractions allowed)."""
  if raw is None or raw.strip() == "":
    return default
  value = float(raw)
  if value <= 0:
    raise ValueError(f"{name} must be a positive number of seconds.")
  return value


def _optional_str(raw: str | None) -> str | None:
  if raw is None:
    return None
  value = raw.strip()
  if value == "":
    return None
  return value


def _render_timeouts() -> RenderTimeouts:
  defaults = RenderTimeouts()
  return RenderTimeouts(
    connect=_parse_seconds(os.getenv("FOLIO_RENDER_CONNECT_TIMEOUT"), defaults.connect, name="FOLIO_RENDER_CONNECT_TIMEOUT"),
    navigate=_parse_seconds(os.getenv("FOLIO_RENDER_NAVIGATE_TIMEOUT"), defaults.navigate, name="FOLIO_RENDER_NAVIGATE_TIMEOUT"),
    load=_parse_seconds(os.getenv("FOLIO_RENDER_LOAD_TIMEOUT"), defaults.load, name="FOLIO_RENDER_LOAD_TIMEOUT"),
    inject=_parse_seconds(os.getenv("FOLIO_RENDER_INJECT_TIMEOUT"), defaults.inject, name="FOLIO_RENDER_INJECT_TIMEOUT"),
    ready=_parse_seconds(os.getenv("FOLIO_RENDER_READY_TIMEOUT"), defaults.ready, name="FOLIO_RENDER_READY_TIMEOUT"),
    fonts=_parse_seconds(os.getenv("FOLIO_RENDER_FONTS_TIMEOUT"), defaults.fonts, name="FOLIO_RENDER_FONTS_TIMEOUT"),
    cleanup=_parse_seconds(os.getenv("FOLIO_RENDER_CLEANUP_TIMEOUT"), defaults.cleanup, name="FOLIO_RENDER_CLEANUP_TIMEOUT"),
    teardown=_parse_seconds(os.getenv("FOLIO_RENDER_TEARDOWN_TIMEOUT"), defaults.teardown, name="FOLIO_RENDER_TEARDOWN_TIMEOUT"),
  )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
  """Load settings once per process."""
  environment = (os.getenv("FOLIO_ENV") or "development").strip().lower()
  debug = _parse_bool(os.getenv("FOLIO_DEBUG"))

  task_service_provider = (os.getenv("FOLIO_TASK_SERVICE_PROVIDER") or "celery").strip().lower()
  if task_service_provider not in _TASK_PROVIDERS:
    raise ValueError(f"FOLIO_TASK_SERVICE_PROVIDER must be one of {sorted(_TASK_PROVIDERS)}.")

  redis_url = (os.getenv("FOLIO_REDIS_URL") or "redis://localhost:6379/0").strip()
  # The broker shares the Redis instance unless told otherwise.
  broker_url = _optional_str(os.getenv("FOLIO_BROKER_URL")) or redis_url

  return Settings(
    environment=environment,
    debug=debug,
    allowed_origins=_parse_origins(os.getenv("FOLIO_ALLOWED_ORIGINS")),
    log_level=(os.getenv("FOLIO_LOG_LEVEL") or "INFO").strip().upper(),
    log_max_bytes=_parse_int(os.getenv("FOLIO_LOG_MAX_BYTES"), 10 * 1024 * 1024, name="FOLIO_LOG_MAX_BYTES"),
    log_backup_count=_parse_int(os.getenv("FOLIO_LOG_BACKUP_COUNT"), 5, name="FOLIO_LOG_BACKUP_COUNT", minimum=0),
    log_http_4xx=_parse_bool(os.getenv("FOLIO_LOG_HTTP_4XX")),
    log_http_bodies=_parse_bool(os.getenv("FOLIO_LOG_HTTP_BODIES")),
    log_http_body_bytes=_parse_int(os.getenv("FOLIO_LOG_HTTP_BODY_BYTES"), 2048, name="FOLIO_LOG_HTTP_BODY_BYTES"),
    pg_dsn=os.getenv("FOLIO_PG_DSN") or os.getenv("DATABASE_URL"),
    pg_connect_timeout=_parse_int(os.getenv("FOLIO_PG_CONNECT_TIMEOUT"), 5, name="FOLIO_PG_CONNECT_TIMEOUT"),
    redis_url=redis_url,
    broker_url=broker_url,
    storage_bucket=(os.getenv("FOLIO_STORAGE_BUCKET") or "folio-documents").strip(),
    gcs_storage_host=_optional_str(os.getenv("GCS_STORAGE_HOST")),
    gcp_project_id=_optional_str(os.getenv("GCP_PROJECT_ID")),
    firebase_project_id=_optional_str(os.getenv("FIREBASE_PROJECT_ID")),
    firebase_service_account_json_path=_optional_str(os.getenv("FIREBASE_SERVICE_ACCOUNT_JSON_PATH")),
    internal_api_secret=_optional_str(os.getenv("FOLIO_INTERNAL_API_SECRET")),
    internal_api_base_url=(os.getenv("FOLIO_INTERNAL_API_BASE_URL") or "http://api:8080").strip().rstrip("/"),
    frontend_base_url=(os.getenv("FOLIO_FRONTEND_BASE_URL") or "http://frontend:3000").strip().rstrip("/"),
    browser_ws_endpoint=_optional_str(os.getenv("FOLIO_BROWSER_WS_ENDPOINT")),
    task_service_provider=task_service_provider,
    task_secret=_optional_str(os.getenv("FOLIO_TASK_SECRET")),
    base_url=_optional_str(os.getenv("FOLIO_BASE_URL")),
    worker_concurrency=_parse_int(os.getenv("FOLIO_WORKER_CONCURRENCY"), 10, name="FOLIO_WORKER_CONCURRENCY"),
    job_max_attempts=_parse_int(os.getenv("FOLIO_JOB_MAX_ATTEMPTS"), 5, name="FOLIO_JOB_MAX_ATTEMPTS"),
    job_backoff_base_seconds=_parse_seconds(os.getenv("FOLIO_JOB_BACKOFF_BASE_SECONDS"), 2.0, name="FOLIO_JOB_BACKOFF_BASE_SECONDS"),
    job_backoff_max_seconds=_parse_seconds(os.getenv("FOLIO_JOB_BACKOFF_MAX_SECONDS"), 300.0, name="FOLIO_JOB_BACKOFF_MAX_SECONDS"),
    download_token_ttl_seconds=_parse_int(os.getenv("FOLIO_DOWNLOAD_TOKEN_TTL_SECONDS"), 60, name="FOLIO_DOWNLOAD_TOKEN_TTL_SECONDS"),
    login_rate_limit_per_hour=_parse_int(os.getenv("FOLIO_LOGIN_RATE_LIMIT_PER_HOUR"), 10, name="FOLIO_LOGIN_RATE_LIMIT_PER_HOUR"),
    login_lock_threshold=_parse_int(os.getenv("FOLIO_LOGIN_LOCK_THRESHOLD"), 5, name="FOLIO_LOGIN_LOCK_THRESHOLD"),
    login_lock_ttl_seconds=_parse_int(os.getenv("FOLIO_LOGIN_LOCK_TTL_SECONDS"), 30 * 60, name="FOLIO_LOGIN_LOCK_TTL_SECONDS"),
    pdf_rate_limit_per_hour=_parse_int(os.getenv("FOLIO_PDF_RATE_LIMIT_PER_HOUR"), 3, name="FOLIO_PDF_RATE_LIMIT_PER_HOUR"),
    preview_rate_limit_per_hour=_parse_int(os.getenv("FOLIO_PREVIEW_RATE_LIMIT_PER_HOUR"), 3, name="FOLIO_PREVIEW_RATE_LIMIT_PER_HOUR"),
    upload_rate_limit_per_hour=_parse_int(os.getenv("FOLIO_UPLOAD_RATE_LIMIT_PER_HOUR"), 2, name="FOLIO_UPLOAD_RATE_LIMIT_PER_HOUR"),
    render_timeouts=_render_timeouts(),
  )


@lru_cache(maxsize=1)
def get_database_settings() -> DatabaseSettings:
  """Load database settings without requiring web-runtime configuration like CORS."""
  debug = _parse_bool(os.getenv("FOLIO_DEBUG"))
  pg_connect_timeout = _parse_int(os.getenv("FOLIO_PG_CONNECT_TIMEOUT"), 5, name="FOLIO_PG_CONNECT_TIMEOUT")
  pg_dsn = os.getenv("FOLIO_PG_DSN") or os.getenv("DATABASE_URL")
  return DatabaseSettings(debug=debug, pg_dsn=pg_dsn, pg_connect_timeout=pg_connect_timeout)
