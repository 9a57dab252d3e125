from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from folio.jobs.errors import ErrorCode
from folio.jobs.handlers import JPEG_CONTENT_TYPE, PDF_CONTENT_TYPE, PdfGenerateHandler, TemplatePreviewHandler, resume_pdf_object_name, template_preview_object_name
from folio.jobs.models import DocumentKind, Job, JobType
from folio.rendering.payload import RenderPayload, RenderWarning
from folio.storage.documents_repo import DocumentRecord


def _print_data(payload: RenderPayload) -> AsyncMock:
  source = AsyncMock()
  source.fetch.return_value = payload
  return source


@pytest.mark.anyio
async def test_pdf_handler_uploads_under_a_stable_name(object_store) -> None:
  payload = RenderPayload(warnings=[RenderWarning(code=int(ErrorCode.RESOURCE_MISSING), message="missing", missing_keys=["user-assets/7/x.png"])])
  renderer = AsyncMock()
  renderer.render_pdf.return_value = b"%PDF"
  handler = PdfGenerateHandler(_print_data(payload), renderer, object_store)
  document = DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7")

  result = await handler.run(Job(type=JobType.PDF_GENERATE, target_id=42, correlation_id="abc"), document)

  assert result.artifact == "generated-resumes/7/42.pdf" == resume_pdf_object_name("7", 42)
  assert result.missing_keys == ("user-assets/7/x.png",)
  assert object_store.uploads == [("generated-resumes/7/42.pdf", b"%PDF", PDF_CONTENT_TYPE)]
  renderer.render_pdf.assert_awaited_once_with(DocumentKind.RESUME, 42, payload)


@pytest.mark.anyio
async def test_preview_handler_stores_jpeg(object_store) -> None:
  renderer = AsyncMock()
  renderer.render_preview.return_value = b"jpeg"
  handler = TemplatePreviewHandler(_print_data(RenderPayload()), renderer, object_store)

  result = await handler.run(Job(type=JobType.TEMPLATE_PREVIEW, target_id=3), DocumentRecord(kind=DocumentKind.TEMPLATE, id=3, owner_id="7"))

  assert result.artifact == template_preview_object_name(3) == "thumbnails/template/3/preview.jpg"
  assert result.missing_keys == ()
  assert object_store.uploads[0][2] == JPEG_CONTENT_TYPE
