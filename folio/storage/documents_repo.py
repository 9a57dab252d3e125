"""Storage interfaces for the documents that jobs render."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Protocol

from folio.jobs.models import DocumentKind


@dataclass(frozen=True)
class DocumentRecord:
  """Resume or template row reduced to what the render pipeline needs."""

  kind: DocumentKind
  id: int
  owner_id: str
  content: dict[str, Any] = field(default_factory=dict, hash=False)
  status: str | None = None
  artifact: str | None = None

  @property
  def has_artifact(self) -> bool:
    if self.kind is DocumentKind.RESUME:
      return self.status == "completed" and bool(self.artifact)
    return bool(self.artifact)


class DocumentsRepository(Protocol):
  """Repository contract for render targets."""

  async def get_document(self, kind: DocumentKind, document_id: int) -> DocumentRecord | None:
    """Fetch a document by kind and id."""

  async def mark_pending(self, kind: DocumentKind, document_id: int) -> None:
    """Flag a document as having a render in flight."""

  async def mark_completed(self, kind: DocumentKind, document_id: int, artifact: str) -> None:
    """Record the artifact of a successful render; later calls overwrite earlier ones."""

  async def mark_failed(self, kind: DocumentKind, document_id: int) -> None:
    """Record a terminal render failure."""
