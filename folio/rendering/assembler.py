"""Resolve a stored layout into a self-contained render payload."""

from __future__ import annotations

import base64
import logging
from dataclasses import dataclass
from typing import Any, Protocol

from folio.jobs.errors import ErrorCode, TransientJobError
from folio.rendering.payload import IMAGE_ITEM_TYPE, RenderItem, RenderPayload, RenderWarning, decode_layout, normalize_content
from folio.services.storage_client import ObjectForbidden, ObjectNotFound, StorageError, StorageObjectMetadata

logger = logging.getLogger(__name__)

USER_ASSET_PREFIX = "user-assets"
MAX_ASSET_KEY_LENGTH = 200
ALLOWED_IMAGE_SUFFIXES = (".png", ".jpg", ".jpeg", ".webp")
DEFAULT_IMAGE_CONTENT_TYPE = "image/png"
MISSING_IMAGE_MESSAGE = "Image resource missing or invalid; the item was skipped"


class AssetSource(Protocol):
  """Object store read contract used to inline images."""

  async def download(self, object_name: str) -> tuple[bytes, StorageObjectMetadata]:
    """Return object bytes and metadata, raising ObjectNotFound/ObjectForbidden."""


@dataclass(frozen=True)
class DroppedItem:
  item_id: str
  key: str
  reason: str


def is_valid_user_asset_key(owner_id: str, key: str) -> bool:
  """Accept only keys inside the owner's asset prefix with an image suffix and no path tricks."""
  if not key or not owner_id:
    return False
  if not key.startswith(f"{USER_ASSET_PREFIX}/{owner_id}/"):
    return False
  if ".." in key or "\\" in key or "//" in key:
    return False
  if len(key) > MAX_ASSET_KEY_LENGTH:
    return False
  return key.strip().lower().endswith(ALLOWED_IMAGE_SUFFIXES)


def to_data_uri(data: bytes, content_type: str | None) -> str:
  mime = (content_type or "").strip() or DEFAULT_IMAGE_CONTENT_TYPE
  return f"data:{mime};base64,{base64.b64encode(data).decode('ascii')}"


class PrintDataAssembler:
  """Builds a RenderPayload, inlining owner images and recording the ones it could not resolve."""

  def __init__(self, assets: AssetSource) -> None:
    self._assets = assets

  async def build(self, owner_id: str, raw: bytes | str | dict[str, Any]) -> RenderPayload:
    """Assemble a payload; only a malformed layout raises (AssemblyError)."""
    payload = decode_layout(raw)
    kept: list[RenderItem] = []
    dropped: list[DroppedItem] = []

    for item in payload.items:
      if item.type.strip() != IMAGE_ITEM_TYPE:
        item.content = normalize_content(item.content)
        kept.append(item)
        continue

      resolved, reason, key = await self._resolve_image(owner_id, item.content)
      if resolved is None:
        dropped.append(DroppedItem(item_id=item.id.strip(), key=key, reason=reason))
        continue
      item.content = resolved
      kept.append(item)

    payload.items = kept
    # One warning per dropped item keeps warnings aligned with the items removed.
    for entry in dropped:
      logger.warning("Print image item removed item_id=%s object_key=%s reason=%s", entry.item_id, entry.key, entry.reason)
      payload.warnings.append(RenderWarning(code=int(ErrorCode.RESOURCE_MISSING), message=MISSING_IMAGE_MESSAGE, missing_keys=[entry.key] if entry.key else []))
    return payload

  async def _resolve_image(self, owner_id: str, content: Any) -> tuple[str | None, str, str]:
    """Return (data_uri, reason, key); data_uri is None when the item has to be dropped."""
    if content is None:
      return None, "image content empty", ""
    if not isinstance(content, str):
      return None, "image content is not a string", ""
    key = content.strip()
    if not key:
      return None, "image content empty", ""
    if not is_valid_user_asset_key(owner_id, key):
      return None, "image object key invalid", key

    try:
      data, metadata = await self._assets.download(key)
    except ObjectNotFound:
      return None, "image object not found", key
    except ObjectForbidden:
      return None, "image object access denied", key
    except StorageError as exc:
      raise TransientJobError(f"failed to fetch image {key}: {exc}") from exc
    return to_data_uri(data, metadata.content_type), "", key
