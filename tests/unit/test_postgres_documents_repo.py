from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

from folio.jobs.models import DocumentKind
from folio.schema.sql import Resume, Template
from folio.storage.postgres_documents_repo import PostgresDocumentsRepository


def _repo(session: AsyncMock) -> PostgresDocumentsRepository:
  factory = MagicMock()
  factory.return_value.__aenter__.return_value = session
  return PostgresDocumentsRepository(session_factory=factory)


@pytest.mark.anyio
async def test_get_document_maps_resume_rows() -> None:
  session = AsyncMock()
  session.get.return_value = SimpleNamespace(id=42, user_id="7", content={"items": []}, status="completed", pdf_url="generated-resumes/7/42.pdf")

  record = await _repo(session).get_document(DocumentKind.RESUME, 42)

  session.get.assert_awaited_once_with(Resume, 42)
  assert record.owner_id == "7"
  assert record.has_artifact


@pytest.mark.anyio
async def test_get_document_returns_none_for_missing_template() -> None:
  session = AsyncMock()
  session.get.return_value = None
  assert await _repo(session).get_document(DocumentKind.TEMPLATE, 3) is None
  session.get.assert_awaited_once_with(Template, 3)


@pytest.mark.anyio
async def test_mark_completed_is_a_single_committed_update() -> None:
  session = AsyncMock()

  await _repo(session).mark_completed(DocumentKind.RESUME, 42, "generated-resumes/7/42.pdf")

  session.execute.assert_awaited_once()
  statement = session.execute.await_args.args[0]
  assert statement.table.name == "resumes"
  session.commit.assert_awaited_once()


@pytest.mark.anyio
async def test_template_failures_leave_the_row_untouched() -> None:
  session = AsyncMock()
  await _repo(session).mark_failed(DocumentKind.TEMPLATE, 3)
  session.execute.assert_not_awaited()
