"""Submission, download-link, and download-file endpoints for resumes and templates."""

from __future__ import annotations

import logging
import re
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import Response
from pydantic import BaseModel

from folio.api.deps import QuotaCharge, get_documents_repo, get_enqueuer, get_storage_client, get_token_issuer, rate_limited
from folio.core.middleware import new_correlation_id
from folio.core.security import Identity, get_current_identity
from folio.jobs.models import JOB_TYPE_FOR_KIND, DocumentKind, Job
from folio.services.download_tokens import DownloadLinkExpired, DownloadTokenIssuer
from folio.services.storage_client import StorageClient, StorageError
from folio.services.tasks.interface import TaskEnqueuer
from folio.storage.documents_repo import DocumentRecord, DocumentsRepository

router = APIRouter()
logger = logging.getLogger(__name__)

_FILENAME_UNSAFE = re.compile(r"[^A-Za-z0-9._-]+")
_DEFAULT_CONTENT_TYPES = {DocumentKind.RESUME: "application/pdf", DocumentKind.TEMPLATE: "image/jpeg"}
_EXTENSIONS = {DocumentKind.RESUME: ".pdf", DocumentKind.TEMPLATE: ".jpg"}
_LABELS = {DocumentKind.RESUME: "Resume", DocumentKind.TEMPLATE: "Template"}


class JobAcceptedResponse(BaseModel):
  message: str
  correlation_id: str
  task_id: str


class DownloadLinkResponse(BaseModel):
  token: str
  uid: str
  expires_in: int


async def _owned_document(repo: DocumentsRepository, kind: DocumentKind, document_id: int, identity: Identity) -> DocumentRecord:
  document = await repo.get_document(kind, document_id)
  if document is None:
    raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"{_LABELS[kind]} not found")
  if document.owner_id != identity.uid:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=f"Not allowed to access this {kind.value}")
  return document


def _correlation_id(request: Request) -> str:
  return getattr(request.state, "correlation_id", None) or new_correlation_id()


def attachment_filename(kind: DocumentKind, document_id: int, requested: str | None) -> str:
  """Sanitized download name that always carries the artifact's extension."""
  extension = _EXTENSIONS[kind]
  default = f"{kind.value}-{document_id}{extension}"
  if not requested:
    return default
  stem = _FILENAME_UNSAFE.sub("_", requested.strip()).strip("._")[:100]
  if not stem:
    return default
  return stem if stem.lower().endswith(extension) else f"{stem}{extension}"


async def _submit(kind: DocumentKind, document_id: int, request: Request, identity: Identity, charge_quota: QuotaCharge, repo: DocumentsRepository, enqueuer: TaskEnqueuer) -> JobAcceptedResponse:
  document = await _owned_document(repo, kind, document_id, identity)
  await charge_quota()
  correlation_id = _correlation_id(request)
  job = Job(type=JOB_TYPE_FOR_KIND[kind], target_id=document.id, correlation_id=correlation_id)

  await repo.mark_pending(kind, document.id)
  try:
    task_id = await enqueuer.enqueue(job)
  except Exception as exc:  # noqa: BLE001
    logger.error("Failed to enqueue %s target_id=%s correlation_id=%s", job.type, job.target_id, correlation_id, exc_info=True)
    raise HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Could not queue the job; try again shortly") from exc

  logger.info("Accepted %s target_id=%s correlation_id=%s task_id=%s", job.type, job.target_id, correlation_id, task_id)
  return JobAcceptedResponse(message=f"{_LABELS[kind]} generation started", correlation_id=correlation_id, task_id=task_id)


async def _issue_link(kind: DocumentKind, document_id: int, identity: Identity, repo: DocumentsRepository, issuer: DownloadTokenIssuer) -> DownloadLinkResponse:
  document = await _owned_document(repo, kind, document_id, identity)
  if not document.has_artifact:
    raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=f"{_LABELS[kind]} has not been generated yet")
  issued = await issuer.issue(identity.uid, kind, document.id)
  return DownloadLinkResponse(token=issued.token, uid=issued.owner_id, expires_in=issued.expires_in)


async def _download(kind: DocumentKind, document_id: int, uid: str, token: str, filename: str | None, repo: DocumentsRepository, issuer: DownloadTokenIssuer, storage: StorageClient) -> Response:
  await issuer.consume(uid, kind, document_id, token)

  # Past this point the token is spent; every miss still answers with the same expired response.
  document = await repo.get_document(kind, document_id)
  if document is None or document.owner_id != uid or not document.has_artifact or not document.artifact:
    logger.warning("Consumed download token without a downloadable artifact kind=%s target_id=%s", kind, document_id)
    raise DownloadLinkExpired()
  try:
    data, metadata = await storage.download(document.artifact)
  except StorageError as exc:
    logger.error("Artifact fetch failed kind=%s target_id=%s object=%s", kind, document_id, document.artifact)
    raise DownloadLinkExpired() from exc

  name = attachment_filename(kind, document_id, filename)
  headers = {"Content-Disposition": f'attachment; filename="{name}"', "Cache-Control": "no-store"}
  return Response(content=data, media_type=metadata.content_type or _DEFAULT_CONTENT_TYPES[kind], headers=headers)


@router.post("/resume/{resume_id}/generate-pdf", status_code=status.HTTP_202_ACCEPTED, response_model=JobAcceptedResponse)
async def generate_resume_pdf(
  resume_id: int,
  request: Request,
  identity: Annotated[Identity, Depends(get_current_identity)],
  charge_quota: Annotated[QuotaCharge, Depends(rate_limited("pdf"))],
  repo: Annotated[DocumentsRepository, Depends(get_documents_repo)],
  enqueuer: Annotated[TaskEnqueuer, Depends(get_enqueuer)],
) -> JobAcceptedResponse:
  """Queue PDF generation; the correlation id comes back here and again in the completion event."""
  return await _submit(DocumentKind.RESUME, resume_id, request, identity, charge_quota, repo, enqueuer)


@router.post("/templates/{template_id}/generate-preview", status_code=status.HTTP_202_ACCEPTED, response_model=JobAcceptedResponse)
async def generate_template_preview(
  template_id: int,
  request: Request,
  identity: Annotated[Identity, Depends(get_current_identity)],
  charge_quota: Annotated[QuotaCharge, Depends(rate_limited("preview"))],
  repo: Annotated[DocumentsRepository, Depends(get_documents_repo)],
  enqueuer: Annotated[TaskEnqueuer, Depends(get_enqueuer)],
) -> JobAcceptedResponse:
  return await _submit(DocumentKind.TEMPLATE, template_id, request, identity, charge_quota, repo, enqueuer)


@router.get("/resume/{resume_id}/download-link", response_model=DownloadLinkResponse)
async def resume_download_link(
  resume_id: int, identity: Annotated[Identity, Depends(get_current_identity)], repo: Annotated[DocumentsRepository, Depends(get_documents_repo)], issuer: Annotated[DownloadTokenIssuer, Depends(get_token_issuer)]
) -> DownloadLinkResponse:
  return await _issue_link(DocumentKind.RESUME, resume_id, identity, repo, issuer)


@router.get("/templates/{template_id}/download-link", response_model=DownloadLinkResponse)
async def template_download_link(
  template_id: int, identity: Annotated[Identity, Depends(get_current_identity)], repo: Annotated[DocumentsRepository, Depends(get_documents_repo)], issuer: Annotated[DownloadTokenIssuer, Depends(get_token_issuer)]
) -> DownloadLinkResponse:
  return await _issue_link(DocumentKind.TEMPLATE, template_id, identity, repo, issuer)


@router.get("/resume/{resume_id}/download-file")
async def resume_download_file(
  resume_id: int,
  repo: Annotated[DocumentsRepository, Depends(get_documents_repo)],
  issuer: Annotated[DownloadTokenIssuer, Depends(get_token_issuer)],
  storage: Annotated[StorageClient, Depends(get_storage_client)],
  uid: Annotated[str, Query()] = "",
  token: Annotated[str, Query()] = "",
  filename: Annotated[str | None, Query()] = None,
) -> Response:
  """Unauthenticated fetch gated by a single-use token."""
  return await _download(DocumentKind.RESUME, resume_id, uid, token, filename, repo, issuer, storage)


@router.get("/templates/{template_id}/download-file")
async def template_download_file(
  template_id: int,
  repo: Annotated[DocumentsRepository, Depends(get_documents_repo)],
  issuer: Annotated[DownloadTokenIssuer, Depends(get_token_issuer)],
  storage: Annotated[StorageClient, Depends(get_storage_client)],
  uid: Annotated[str, Query()] = "",
  token: Annotated[str, Query()] = "",
  filename: Annotated[str | None, Query()] = None,
) -> Response:
  return await _download(DocumentKind.TEMPLATE, template_id, uid, token, filename, repo, issuer, storage)
