"""Wire format of job outcome notifications."""

from __future__ import annotations

from typing import Any, Literal

import msgspec

from folio.jobs.errors import ErrorCode
from folio.jobs.models import DocumentKind

NotificationStatus = Literal["completed", "error"]

USER_CHANNEL_PREFIX = "user_notify:"

_ID_FIELDS = {DocumentKind.RESUME: "resume_id", DocumentKind.TEMPLATE: "template_id"}


def user_channel(owner_id: str) -> str:
  return f"{USER_CHANNEL_PREFIX}{owner_id}"


class NotificationEvent(msgspec.Struct, frozen=True):
  """One terminal job outcome addressed to the document owner."""

  status: NotificationStatus
  kind: DocumentKind
  target_id: int
  correlation_id: str = ""
  error_code: int = int(ErrorCode.OK)
  error_message: str = ""
  missing_keys: tuple[str, ...] = ()

  def to_wire(self) -> dict[str, Any]:
    message: dict[str, Any] = {"status": self.status, _ID_FIELDS[self.kind]: self.target_id, "correlation_id": self.correlation_id, "error_code": self.error_code, "error_message": self.error_message}
    if self.missing_keys:
      message["missing_keys"] = list(self.missing_keys)
    return message

  def encode(self) -> bytes:
    return msgspec.json.encode(self.to_wire())


def decode_event(raw: bytes | str) -> NotificationEvent | None:
  """Parse a wire message back into an event; anything unrecognised yields None."""
  try:
    message = msgspec.json.decode(raw)
  except msgspec.DecodeError:
    return None
  if not isinstance(message, dict) or message.get("status") not in {"completed", "error"}:
    return None

  for kind, field_name in _ID_FIELDS.items():
    target_id = message.get(field_name)
    if isinstance(target_id, int) and not isinstance(target_id, bool):
      missing = message.get("missing_keys") or []
      return NotificationEvent(
        status=message["status"],
        kind=kind,
        target_id=target_id,
        correlation_id=str(message.get("correlation_id") or ""),
        error_code=int(message.get("error_code") or 0),
        error_message=str(message.get("error_message") or ""),
        missing_keys=tuple(str(key) for key in missing if isinstance(key, str)),
      )
  return None


def completed_event(kind: DocumentKind, target_id: int, correlation_id: str, missing_keys: tuple[str, ...] = ()) -> NotificationEvent:
  """Success notification; missing assets downgrade the code to RESOURCE_MISSING."""
  if missing_keys:
    return NotificationEvent(status="completed", kind=kind, target_id=target_id, correlation_id=correlation_id, error_code=int(ErrorCode.RESOURCE_MISSING), error_message="Some images were missing and were skipped", missing_keys=missing_keys)
  return NotificationEvent(status="completed", kind=kind, target_id=target_id, correlation_id=correlation_id)


def error_event(kind: DocumentKind, target_id: int, correlation_id: str, message: str) -> NotificationEvent:
  return NotificationEvent(status="error", kind=kind, target_id=target_id, correlation_id=correlation_id, error_code=int(ErrorCode.SYSTEM_ERROR), error_message=message)
