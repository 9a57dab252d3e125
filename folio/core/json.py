"""Custom JSON handling."""

from __future__ import annotations

import json
from typing import Any

from fastapi.responses import JSONResponse


class CompactJSONResponse(JSONResponse):
  """JSONResponse with compact separators and unescaped unicode."""

  def render(self, content: Any) -> bytes:
    return json.dumps(content, ensure_ascii=False, allow_nan=False, indent=None, separators=(",", ":")).encode("utf-8")
