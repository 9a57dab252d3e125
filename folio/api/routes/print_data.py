"""Internal print-data endpoints consumed by the render worker and the render page."""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from starlette.responses import Response

from folio.api.deps import get_assembler, get_documents_repo, require_internal_secret
from folio.api.msgspec_utils import encode_msgspec_response
from folio.jobs.errors import AssemblyError, TransientJobError
from folio.jobs.models import DocumentKind
from folio.rendering.assembler import PrintDataAssembler
from folio.storage.documents_repo import DocumentsRepository

router = APIRouter(dependencies=[Depends(require_internal_secret)])
logger = logging.getLogger(__name__)


async def _print_payload(kind: DocumentKind, document_id: int, repo: DocumentsRepository, assembler: PrintDataAssembler) -> Response:
  document = await repo.get_document(kind, document_id)
  if document is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{kind.value.capitalize()} not found")
  try:
    payload = await assembler.build(document.owner_id, document.content)
  except AssemblyError as exc:
    logger.error("Stored layout is malformed kind=%s id=%s: %s", kind, document_id, exc)
    raise HTTPException(status_code=status.HTTP_422_UNPROCESSABLE_ENTITY, detail="Stored layout is malformed") from exc
  except TransientJobError as exc:
    logger.warning("Asset storage unavailable while assembling kind=%s id=%s: %s", kind, document_id, exc)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Asset storage unavailable") from exc
  return encode_msgspec_response(payload)


@router.get("/v1/resume/print/{resume_id}")
async def resume_print_data(resume_id: int, repo: Annotated[DocumentsRepository, Depends(get_documents_repo)], assembler: Annotated[PrintDataAssembler, Depends(get_assembler)]) -> Response:
  """Self-contained render payload with owner images inlined."""
  return await _print_payload(DocumentKind.RESUME, resume_id, repo, assembler)


@router.get("/v1/templates/print/{template_id}")
async def template_print_data(template_id: int, repo: Annotated[DocumentsRepository, Depends(get_documents_repo)], assembler: Annotated[PrintDataAssembler, Depends(get_assembler)]) -> Response:
  return await _print_payload(DocumentKind.TEMPLATE, template_id, repo, assembler)
