"""Render payload types shared by the print endpoint, the assembler, and the browser renderer."""

from __future__ import annotations

from typing import Any

import msgspec

from folio.jobs.errors import AssemblyError, ErrorCode

IMAGE_ITEM_TYPE = "image"

DEFAULT_COLUMNS = 24
DEFAULT_ROW_HEIGHT_PX = 10
DEFAULT_ACCENT_COLOR = "#000000"
DEFAULT_FONT_FAMILY = "Arial"
DEFAULT_FONT_SIZE_PT = 10


class ItemLayout(msgspec.Struct):
  x: int = 0
  y: int = 0
  w: int = 1
  h: int = 1


class RenderItem(msgspec.Struct):
  """One positioned block; image `content` is an object key before assembly and a data URI after."""

  id: str = ""
  type: str = ""
  content: Any = None
  layout: ItemLayout = msgspec.field(default_factory=ItemLayout)
  style: dict[str, Any] | None = None


class LayoutSettings(msgspec.Struct):
  columns: int = DEFAULT_COLUMNS
  row_height_px: int = DEFAULT_ROW_HEIGHT_PX
  accent_color: str = DEFAULT_ACCENT_COLOR
  font_family: str = DEFAULT_FONT_FAMILY
  font_size_pt: int = DEFAULT_FONT_SIZE_PT
  margin_px: int = 0


class RenderWarning(msgspec.Struct):
  code: int
  message: str
  missing_keys: list[str] = msgspec.field(default_factory=list)


class RenderPayload(msgspec.Struct, omit_defaults=True):
  layout_settings: LayoutSettings = msgspec.field(default_factory=LayoutSettings)
  items: list[RenderItem] = msgspec.field(default_factory=list)
  warnings: list[RenderWarning] = msgspec.field(default_factory=list)

  def missing_keys(self) -> list[str]:
    """Unique, non-empty missing keys across resource-missing warnings, in first-seen order."""
    seen: dict[str, None] = {}
    for warning in self.warnings:
      if warning.code != ErrorCode.RESOURCE_MISSING:
        continue
      for key in warning.missing_keys:
        key = key.strip()
        if key:
          seen.setdefault(key, None)
    return list(seen)


def decode_layout(raw: bytes | str | dict[str, Any]) -> RenderPayload:
  """Decode a stored layout (JSON text or an already-parsed JSONB dict) and apply defaults."""
  try:
    if isinstance(raw, dict):
      payload = msgspec.convert(raw, type=RenderPayload)
    else:
      payload = msgspec.json.decode(raw, type=RenderPayload)
  except (msgspec.DecodeError, msgspec.ValidationError) as exc:
    raise AssemblyError(f"invalid layout document: {exc}") from exc
  return apply_layout_defaults(payload)


def decode_payload(raw: bytes | str) -> RenderPayload:
  """Decode an assembled payload returned by the internal print endpoint."""
  try:
    return msgspec.json.decode(raw, type=RenderPayload)
  except (msgspec.DecodeError, msgspec.ValidationError) as exc:
    raise AssemblyError(f"invalid print payload: {exc}") from exc


def encode_payload(payload: RenderPayload) -> bytes:
  return msgspec.json.encode(payload)


def normalize_content(value: Any) -> str:
  """Coerce non-image item content to text for the render page."""
  if value is None:
    return ""
  if isinstance(value, str):
    return value
  return msgspec.json.encode(value).decode("utf-8")


def apply_layout_defaults(payload: RenderPayload) -> RenderPayload:
  """Clamp geometry and fill unset settings so the render page never sees zero-sized grids."""
  settings = payload.layout_settings
  if settings.columns <= 0:
    settings.columns = DEFAULT_COLUMNS
  if settings.row_height_px <= 0:
    settings.row_height_px = DEFAULT_ROW_HEIGHT_PX
  if not settings.font_family.strip():
    settings.font_family = DEFAULT_FONT_FAMILY
  if settings.font_size_pt <= 0:
    settings.font_size_pt = DEFAULT_FONT_SIZE_PT
  if settings.margin_px < 0:
    settings.margin_px = 0
  if not settings.accent_color.strip():
    settings.accent_color = DEFAULT_ACCENT_COLOR

  for item in payload.items:
    layout = item.layout
    layout.x = max(layout.x, 0)
    layout.y = max(layout.y, 0)
    layout.w = max(layout.w, 1)
    layout.h = max(layout.h, 1)
    if item.style is None:
      item.style = {}
  return payload
