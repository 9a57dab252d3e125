"""End-to-end HTTP flows for submission, download links, and downloads with in-memory collaborators."""

from __future__ import annotations

import pytest

from folio.core.security import Identity, get_current_identity
from folio.jobs.models import DocumentKind, JobType
from folio.main import app
from folio.storage.documents_repo import DocumentRecord

PDF_KEY = "generated-resumes/7/42.pdf"


@pytest.fixture
def as_owner():
  app.dependency_overrides[get_current_identity] = lambda: Identity(uid="7")
  yield
  app.dependency_overrides.pop(get_current_identity, None)


@pytest.fixture
def completed_resume(documents_repo, object_store) -> DocumentRecord:
  object_store.objects[PDF_KEY] = (b"%PDF-1.7 resume", "application/pdf")
  return documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7", status="completed", artifact=PDF_KEY))


@pytest.mark.anyio
async def test_generate_pdf_echoes_correlation_id(api_client, as_owner, documents_repo, enqueuer) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7", status="draft"))

  response = await api_client.post("/v1/resume/42/generate-pdf", headers={"x-correlation-id": "abc"})

  assert response.status_code == 202
  body = response.json()
  assert body["correlation_id"] == "abc"
  assert body["task_id"] == "task-1"
  assert response.headers["x-correlation-id"] == "abc"
  job = enqueuer.jobs[0]
  assert (job.type, job.target_id, job.correlation_id) == (JobType.PDF_GENERATE, 42, "abc")
  assert (await documents_repo.get_document(DocumentKind.RESUME, 42)).status == "pending"


@pytest.mark.anyio
async def test_generate_without_correlation_header_gets_one(api_client, as_owner, documents_repo, enqueuer) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.TEMPLATE, id=3, owner_id="7"))

  response = await api_client.post("/v1/templates/3/generate-preview")

  assert response.status_code == 202
  assert response.json()["correlation_id"]
  assert enqueuer.jobs[0].type is JobType.TEMPLATE_PREVIEW


@pytest.mark.anyio
async def test_generate_is_rate_limited(api_client, as_owner, documents_repo) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7", status="draft"))

  statuses = [(await api_client.post("/v1/resume/42/generate-pdf")).status_code for _ in range(3)]
  limited = await api_client.post("/v1/resume/42/generate-pdf")

  assert statuses == [202, 202, 429]
  assert limited.status_code == 429
  assert int(limited.headers["retry-after"]) >= 1


@pytest.mark.anyio
async def test_generate_checks_ownership(api_client, as_owner, documents_repo, enqueuer) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="8", status="draft"))

  assert (await api_client.post("/v1/resume/42/generate-pdf")).status_code == 403
  assert (await api_client.post("/v1/resume/99/generate-pdf")).status_code == 404
  assert enqueuer.jobs == []



@pytest.mark.anyio
async def test_rejected_submissions_do_not_spend_quota(api_client, as_owner, documents_repo, enqueuer) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=41, owner_id="8", status="draft"))
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7", status="draft"))

  rejected = [(await api_client.post(path)).status_code for path in ("/v1/resume/41/generate-pdf", "/v1/resume/99/generate-pdf", "/v1/resume/99/generate-pdf")]
  accepted = [(await api_client.post("/v1/resume/42/generate-pdf")).status_code for _ in range(2)]

  assert rejected == [403, 404, 404]
  assert accepted == [202, 202]
  assert len(enqueuer.jobs) == 2


@pytest.mark.anyio
async def test_generate_requires_authentication(api_client) -> None:
  response = await api_client.post("/v1/resume/42/generate-pdf")
  assert response.status_code in {401, 403}


@pytest.mark.anyio
async def test_download_link_then_single_use_fetch(api_client, as_owner, completed_resume) -> None:
  link = await api_client.get("/v1/resume/42/download-link")
  assert link.status_code == 200
  body = link.json()
  assert set(body) == {"token", "uid", "expires_in"}
  assert body["uid"] == "7"
  assert body["expires_in"] == 60

  params = {"uid": body["uid"], "token": body["token"], "filename": "My CV"}
  first = await api_client.get("/v1/resume/42/download-file", params=params)
  assert first.status_code == 200
  assert first.content == b"%PDF-1.7 resume"
  assert first.headers["content-type"] == "application/pdf"
  assert first.headers["content-disposition"] == 'attachment; filename="My_CV.pdf"'

  second = await api_client.get("/v1/resume/42/download-file", params=params)
  assert second.status_code == 410
  assert second.json()["detail"] == "Download link expired"


@pytest.mark.anyio
async def test_download_failures_are_indistinguishable(api_client, as_owner, completed_resume) -> None:
  token = (await api_client.get("/v1/resume/42/download-link")).json()["token"]

  responses = [
    await api_client.get("/v1/resume/42/download-file", params={"uid": "7", "token": "forged"}),
    await api_client.get("/v1/resume/42/download-file", params={"uid": "8", "token": token}),
    await api_client.get("/v1/resume/42/download-file"),
  ]

  assert {response.status_code for response in responses} == {410}
  assert {response.json()["detail"] for response in responses} == {"Download link expired"}


@pytest.mark.anyio
async def test_download_link_requires_a_finished_artifact(api_client, as_owner, documents_repo) -> None:
  documents_repo.add(DocumentRecord(kind=DocumentKind.RESUME, id=42, owner_id="7", status="pending"))
  response = await api_client.get("/v1/resume/42/download-link")
  assert response.status_code == 409


@pytest.mark.anyio
async def test_template_preview_download(api_client, as_owner, documents_repo, object_store) -> None:
  object_store.objects["thumbnails/template/3/preview.jpg"] = (b"jpeg", "image/jpeg")
  documents_repo.add(DocumentRecord(kind=DocumentKind.TEMPLATE, id=3, owner_id="7", artifact="thumbnails/template/3/preview.jpg"))

  token = (await api_client.get("/v1/templates/3/download-link")).json()["token"]
  response = await api_client.get("/v1/templates/3/download-file", params={"uid": "7", "token": token})

  assert response.status_code == 200
  assert response.headers["content-disposition"] == 'attachment; filename="template-3.jpg"'
