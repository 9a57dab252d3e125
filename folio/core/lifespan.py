import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from folio.core.database import dispose_engine
from folio.core.firebase import initialize_firebase
from folio.core.logging import _initialize_logging
from folio.core.redis import close_redis
from folio.services.storage_client import build_storage_client


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
  """Set up logging and external clients once uvicorn starts; release them on shutdown."""
  from folio.config import get_settings

  settings = get_settings()
  logger = logging.getLogger("folio.core.lifespan")

  try:
    _initialize_logging(settings)
    logger.info("Startup complete - logging verified.")

    initialize_firebase()
    # Ensure the artifact bucket exists before render jobs upload into it.
    try:
      storage_client = build_storage_client(settings)
      await storage_client.ensure_bucket()
      logger.info("Artifact bucket ensured: %s", storage_client.bucket_name)
    except Exception as exc:  # noqa: BLE001
      logger.warning("Failed to ensure artifact bucket at startup: %s", exc)

  except Exception:
    # Log initialization failures but allow the app to continue starting.
    logger.warning("Initial startup setup failed; will retry on lifespan.", exc_info=True)

  yield

  await close_redis()
  await dispose_engine()
  logger.info("Shutdown complete.")
