from __future__ import annotations

import json
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from starlette.websockets import WebSocketDisconnect

from folio.main import app


def test_socket_closes_when_token_is_rejected(monkeypatch) -> None:
  monkeypatch.setattr("folio.api.routes.ws.get_redis", lambda: MagicMock())
  monkeypatch.setattr("folio.core.security.verify_id_token", lambda token: None)
  client = TestClient(app)

  with client.websocket_connect("/v1/ws") as websocket:
    websocket.send_text(json.dumps({"type": "auth", "token": "expired"}))
    with pytest.raises(WebSocketDisconnect) as exc_info:
      websocket.receive_text()

  assert exc_info.value.code == 1008
