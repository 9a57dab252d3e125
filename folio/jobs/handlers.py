"""Render handlers for resume PDFs and template previews."""

from __future__ import annotations

import logging
from typing import Protocol

from folio.jobs.dispatch import HandlerResult
from folio.jobs.models import DocumentKind, Job
from folio.rendering.payload import RenderPayload
from folio.storage.documents_repo import DocumentRecord

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
JPEG_CONTENT_TYPE = "image/jpeg"


class PrintDataSource(Protocol):
  async def fetch(self, kind: DocumentKind, target_id: int) -> RenderPayload:
    """Return the assembled payload for a document."""


class DocumentRenderer(Protocol):
  async def render_pdf(self, kind: DocumentKind, target_id: int, payload: RenderPayload) -> bytes:
    """Return PDF bytes."""

  async def render_preview(self, kind: DocumentKind, target_id: int, payload: RenderPayload) -> bytes:
    """Return JPEG bytes."""


class ArtifactStore(Protocol):
  async def upload(self, data: bytes, object_name: str, *, content_type: str) -> None:
    """Store bytes under a name, replacing what was there."""


def resume_pdf_object_name(owner_id: str, resume_id: int) -> str:
  # Stable per resume so reprocessing replaces the previous artifact.
  return f"generated-resumes/{owner_id}/{resume_id}.pdf"


def template_preview_object_name(template_id: int) -> str:
  return f"thumbnails/template/{template_id}/preview.jpg"


class PdfGenerateHandler:
  def __init__(self, print_data: PrintDataSource, renderer: DocumentRenderer, store: ArtifactStore) -> None:
    self._print_data = print_data
    self._renderer = renderer
    self._store = store

  async def run(self, job: Job, document: DocumentRecord) -> HandlerResult:
    payload = await self._print_data.fetch(DocumentKind.RESUME, document.id)
    pdf_bytes = await self._renderer.render_pdf(DocumentKind.RESUME, document.id, payload)
    object_name = resume_pdf_object_name(document.owner_id, document.id)
    await self._store.upload(pdf_bytes, object_name, content_type=PDF_CONTENT_TYPE)
    logger.info("Stored resume pdf object=%s bytes=%d correlation_id=%s", object_name, len(pdf_bytes), job.correlation_id)
    return HandlerResult(artifact=object_name, missing_keys=tuple(payload.missing_keys()))


class TemplatePreviewHandler:
  def __init__(self, print_data: PrintDataSource, renderer: DocumentRenderer, store: ArtifactStore) -> None:
    self._print_data = print_data
    self._renderer = renderer
    self._store = store

  async def run(self, job: Job, document: DocumentRecord) -> HandlerResult:
    payload = await self._print_data.fetch(DocumentKind.TEMPLATE, document.id)
    image_bytes = await self._renderer.render_preview(DocumentKind.TEMPLATE, document.id, payload)
    object_name = template_preview_object_name(document.id)
    await self._store.upload(image_bytes, object_name, content_type=JPEG_CONTENT_TYPE)
    logger.info("Stored template preview object=%s bytes=%d correlation_id=%s", object_name, len(image_bytes), job.correlation_id)
    return HandlerResult(artifact=object_name, missing_keys=tuple(payload.missing_keys()))
