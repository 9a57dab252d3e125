"""Postgres-backed repository for resumes and templates using SQLAlchemy."""

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from folio.core.database import get_session_factory
from folio.jobs.models import DocumentKind
from folio.schema.sql import Resume, ResumeStatus, Template
from folio.storage.documents_repo import DocumentRecord, DocumentsRepository


class PostgresDocumentsRepository(DocumentsRepository):
  """Single UPDATE per state change so concurrent jobs for one target end in last-write-wins."""

  def __init__(self, session_factory: async_sessionmaker[AsyncSession] | None = None) -> None:
    self._session_factory = session_factory or get_session_factory()
    if self._session_factory is None:
      raise RuntimeError("Database not initialized")

  async def get_document(self, kind: DocumentKind, document_id: int) -> DocumentRecord | None:
    async with self._session_factory() as session:
      if kind is DocumentKind.RESUME:
        resume = await session.get(Resume, document_id)
        if resume is None:
          return None
        return DocumentRecord(kind=kind, id=resume.id, owner_id=resume.user_id, content=resume.content or {}, status=ResumeStatus(resume.status).value, artifact=resume.pdf_url)

      template = await session.get(Template, document_id)
      if template is None:
        return None
      return DocumentRecord(kind=kind, id=template.id, owner_id=template.user_id, content=template.content or {}, artifact=template.preview_image_url)

  async def mark_pending(self, kind: DocumentKind, document_id: int) -> None:
    if kind is not DocumentKind.RESUME:
      return
    await self._execute(update(Resume).where(Resume.id == document_id).values(status=ResumeStatus.PENDING))

  async def mark_completed(self, kind: DocumentKind, document_id: int, artifact: str) -> None:
    if kind is DocumentKind.RESUME:
      await self._execute(update(Resume).where(Resume.id == document_id).values(pdf_url=artifact, status=ResumeStatus.COMPLETED))
      return
    await self._execute(update(Template).where(Template.id == document_id).values(preview_image_url=artifact))

  async def mark_failed(self, kind: DocumentKind, document_id: int) -> None:
    if kind is not DocumentKind.RESUME:
      return
    await self._execute(update(Resume).where(Resume.id == document_id).values(status=ResumeStatus.FAILED))

  async def _execute(self, statement) -> None:  # type: ignore[no-untyped-def]
    async with self._session_factory() as session:
      await session.execute(statement)
      await session.commit()


def build_documents_repo() -> DocumentsRepository:
  return PostgresDocumentsRepository()
