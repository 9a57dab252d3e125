from __future__ import annotations

import base64

import pytest

from folio.jobs.errors import AssemblyError, ErrorCode, TransientJobError
from folio.rendering.assembler import PrintDataAssembler, is_valid_user_asset_key, to_data_uri
from folio.services.storage_client import ObjectForbidden, StorageError

OWNER = "7"


def _image(item_id: str, key: str) -> dict:
  return {"id": item_id, "type": "image", "content": key, "layout": {"x": 0, "y": 0, "w": 4, "h": 4}}


@pytest.mark.anyio
async def test_unresolved_images_are_dropped_with_one_warning_each(object_store) -> None:
  store = object_store
  store.objects.update({"user-assets/7/a.png": (b"png-a", "image/png"), "user-assets/7/b.jpg": (b"jpg-b", "image/jpeg")})
  layout = {
    "items": [
      _image("1", "user-assets/7/a.png"),
      _image("2", "user-assets/7/missing.png"),
      _image("3", "user-assets/7/b.jpg"),
      _image("4", "user-assets/7/gone.webp"),
      {"id": "t", "type": "text", "content": "Name"},
    ]
  }

  payload = await PrintDataAssembler(store).build(OWNER, layout)

  images = [item for item in payload.items if item.type == "image"]
  assert [item.id for item in images] == ["1", "3"]
  assert images[0].content == f"data:image/png;base64,{base64.b64encode(b'png-a').decode()}"
  assert len(payload.warnings) == 2
  assert all(warning.code == ErrorCode.RESOURCE_MISSING for warning in payload.warnings)
  assert payload.missing_keys() == ["user-assets/7/missing.png", "user-assets/7/gone.webp"]
  assert [item.id for item in payload.items if item.type == "text"] == ["t"]


@pytest.mark.anyio
async def test_keys_outside_owner_prefix_are_never_fetched(object_store) -> None:
  store = object_store
  store.objects["user-assets/8/a.png"] = (b"other", "image/png")
  layout = {"items": [_image("1", "user-assets/8/a.png"), _image("2", "user-assets/7/../8/a.png"), {"id": "3", "type": "image", "content": None}]}

  payload = await PrintDataAssembler(store).build(OWNER, layout)

  assert payload.items == []
  assert len(payload.warnings) == 3
  assert payload.warnings[2].missing_keys == []


@pytest.mark.anyio
async def test_access_denied_counts_as_missing() -> None:
  class DeniedStore:
    async def download(self, object_name: str):
      raise ObjectForbidden(object_name, "object access denied")

  payload = await PrintDataAssembler(DeniedStore()).build(OWNER, {"items": [_image("1", "user-assets/7/a.png")]})
  assert payload.items == []
  assert payload.missing_keys() == ["user-assets/7/a.png"]


@pytest.mark.anyio
async def test_storage_outage_is_transient() -> None:
  class BrokenStore:
    async def download(self, object_name: str):
      raise StorageError(object_name, "object download failed")

  with pytest.raises(TransientJobError):
    await PrintDataAssembler(BrokenStore()).build(OWNER, {"items": [_image("1", "user-assets/7/a.png")]})


@pytest.mark.anyio
async def test_malformed_layout_raises_assembly_error(object_store) -> None:
  with pytest.raises(AssemblyError):
    await PrintDataAssembler(object_store).build(OWNER, b"[1, 2")


def test_is_valid_user_asset_key() -> None:
  assert is_valid_user_asset_key("7", "user-assets/7/photo.JPG")
  assert not is_valid_user_asset_key("7", "user-assets/70/photo.png")
  assert not is_valid_user_asset_key("7", "user-assets/7/notes.txt")
  assert not is_valid_user_asset_key("7", "user-assets/7//photo.png")
  assert not is_valid_user_asset_key("", "user-assets//photo.png")
  assert not is_valid_user_asset_key("7", "user-assets/7/" + "a" * 300 + ".png")


def test_to_data_uri_defaults_content_type() -> None:
  assert to_data_uri(b"x", None).startswith("data:image/png;base64,")
