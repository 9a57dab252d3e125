import logging
import logging.handlers
import sys
import time
import traceback
from pathlib import Path
from types import TracebackType

from folio.config import Settings

LOG_LINE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
LOG_DATE_FORMAT = "%H:%M:%S"
LOG_FORMATTER = logging.Formatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT)
MAX_MESSAGE_CHARS = 4000

_LOG_FILE_PATH: Path | None = None
_LOGGING_INITIALIZED = False


class TruncatedFormatter(logging.Formatter):
  """Formatter that clamps long messages and keeps only the tail of stack traces."""

  def format(self, record: logging.LogRecord) -> str:
    formatted = super().format(record)
    if len(formatted) > MAX_MESSAGE_CHARS and not record.exc_info:
      return f"{formatted[:MAX_MESSAGE_CHARS]}...(truncated {len(formatted) - MAX_MESSAGE_CHARS} chars)"
    return formatted

  # ruff: noqa: N802
  def formatException(self, ei: tuple[type[BaseException] | None, BaseException | None, TracebackType | None]) -> str:
    lines = traceback.format_exception(*ei)
    # Keep header + last 5 lines of traceback
    if len(lines) > 6:
      return "".join(lines[:1] + ["    ...\n"] + lines[-5:])
    return "".join(lines)


def _log_dir() -> Path:
  return Path(__file__).resolve().parent.parent.parent / "logs"


def _build_handlers(settings: Settings, *, process_name: str) -> tuple[logging.Handler, logging.Handler, Path]:
  """Create a console handler and a rotating file handler under the repo logs directory."""
  log_dir = _log_dir()
  try:
    log_dir.mkdir(parents=True, exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log directory at {log_dir}: {exc}") from exc

  log_path = log_dir / f"folio_{process_name}_{time.strftime('%Y%m%d_%H%M%S')}.log"
  try:
    # Touch early so the file exists even if handlers have not flushed yet.
    log_path.touch(exist_ok=True)
  except OSError as exc:
    raise RuntimeError(f"Failed to create log file at {log_path}: {exc}") from exc

  stream = logging.StreamHandler(sys.stdout)
  stream.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))

  file_handler = logging.handlers.RotatingFileHandler(log_path, encoding="utf-8", maxBytes=settings.log_max_bytes, backupCount=settings.log_backup_count)

  # Name backups folio_api_x.log-1 instead of folio_api_x.log.1
  def custom_namer(default_name: str) -> str:
    parts = default_name.rsplit(".", 1)
    if len(parts) == 2 and parts[1].isdigit():
      return f"{parts[0]}-{parts[1]}"
    return default_name

  file_handler.namer = custom_namer
  file_handler.setFormatter(TruncatedFormatter(LOG_LINE_FORMAT, datefmt=LOG_DATE_FORMAT))
  return stream, file_handler, log_path


def setup_logging(settings: Settings, *, process_name: str = "api") -> Path:
  """Ensure all loggers use our handlers and propagate to root."""
  stream_handler, file_handler, log_path = _build_handlers(settings, process_name=process_name)
  level = logging.getLevelName(settings.log_level)
  if not isinstance(level, int):
    level = logging.INFO

  for logger_name in ("uvicorn", "uvicorn.error", "uvicorn.access", "fastapi", "celery"):
    log = logging.getLogger(logger_name)
    log.handlers = [stream_handler, file_handler]
    log.propagate = False

  logging.basicConfig(level=level, handlers=[stream_handler, file_handler], force=True)
  # Quiet libraries that are chatty at DEBUG.
  logging.getLogger("asyncio").setLevel(logging.WARNING)
  logging.getLogger("urllib3").setLevel(logging.WARNING)
  if not log_path.exists():
    raise RuntimeError(f"Logging initialization failed; log file missing at {log_path}")
  return log_path


def _initialize_logging(settings: Settings, *, process_name: str = "api") -> None:
  """Initialize logging once and log the destination file."""
  global _LOG_FILE_PATH, _LOGGING_INITIALIZED
  logger = logging.getLogger("folio.core.logging")
  if _LOGGING_INITIALIZED:
    return
  log_path = setup_logging(settings, process_name=process_name)
  _LOG_FILE_PATH = log_path
  _LOGGING_INITIALIZED = True
  logger.info("Logging initialized. Writing to %s", _LOG_FILE_PATH)
