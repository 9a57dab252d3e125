"""WebSocket gateway that relays a user's notification channel to their live connection."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable

import msgspec
from fastapi import WebSocket, WebSocketDisconnect, status
from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from folio.core.security import AuthenticationError, Identity, authenticate_token
from folio.notifications.contracts import user_channel

logger = logging.getLogger(__name__)

AUTH_TIMEOUT_SECONDS = 10.0
PING_INTERVAL_SECONDS = 30.0
PING_MESSAGE = '{"type":"ping"}'
_POLL_SECONDS = 1.0


class AuthMessage(msgspec.Struct):
  type: str
  token: str = ""


class HandshakeRejected(Exception):
  pass


class NotificationGateway:
  """Authenticates the first frame, then forwards raw channel messages until either side goes away."""

  def __init__(self, redis: Redis, *, authenticate: Callable[[str], Awaitable[Identity]] = authenticate_token, auth_timeout: float = AUTH_TIMEOUT_SECONDS, ping_interval: float = PING_INTERVAL_SECONDS) -> None:
    self._redis = redis
    self._authenticate = authenticate
    self._auth_timeout = auth_timeout
    self._ping_interval = ping_interval

  async def serve(self, websocket: WebSocket) -> None:
    await websocket.accept()
    try:
      identity = await self._handshake(websocket)
    except HandshakeRejected as exc:
      logger.info("WebSocket handshake rejected: %s", exc)
      await websocket.close(code=status.WS_1008_POLICY_VIOLATION, reason="unauthorized")
      return
    except WebSocketDisconnect:
      return

    channel = user_channel(identity.uid)
    pubsub = self._redis.pubsub()
    await pubsub.subscribe(channel)
    logger.info("WebSocket subscribed channel=%s", channel)
    try:
      await self._relay(websocket, pubsub)
    finally:
      try:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
      except Exception:  # noqa: BLE001
        logger.warning("Pubsub cleanup failed channel=%s", channel, exc_info=True)
      logger.info("WebSocket closed channel=%s", channel)

  async def _handshake(self, websocket: WebSocket) -> Identity:
    try:
      raw = await asyncio.wait_for(websocket.receive_text(), timeout=self._auth_timeout)
    except TimeoutError as exc:
      raise HandshakeRejected("auth message not received in time") from exc

    try:
      message = msgspec.json.decode(raw, type=AuthMessage)
    except (msgspec.DecodeError, msgspec.ValidationError) as exc:
      raise HandshakeRejected("first message is not an auth message") from exc
    if message.type != "auth" or not message.token:
      raise HandshakeRejected("first message is not an auth message")

    try:
      identity = await self._authenticate(message.token)
    except AuthenticationError as exc:
      raise HandshakeRejected(str(exc)) from exc
    if identity.must_change_password:
      raise HandshakeRejected("password change required")
    return identity

  async def _relay(self, websocket: WebSocket, pubsub: PubSub) -> None:
    """Run forward, ping and receive loops; the first to finish ends the connection."""
    tasks = {
      asyncio.create_task(self._forward(websocket, pubsub)),
      asyncio.create_task(self._ping(websocket)),
      asyncio.create_task(self._drain_client(websocket)),
    }
    try:
      done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
    finally:
      for task in tasks:
        task.cancel()
      await asyncio.gather(*tasks, return_exceptions=True)

    for task in done:
      exc = task.exception()
      if exc is not None and not isinstance(exc, WebSocketDisconnect):
        logger.warning("WebSocket relay stopped: %s", exc, exc_info=exc)

  async def _forward(self, websocket: WebSocket, pubsub: PubSub) -> None:
    while True:
      message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=_POLL_SECONDS)
      if message is None or message.get("type") != "message":
        continue
      data = message["data"]
      await websocket.send_text(data.decode("utf-8") if isinstance(data, bytes) else str(data))

  async def _ping(self, websocket: WebSocket) -> None:
    while True:
      await asyncio.sleep(self._ping_interval)
      await websocket.send_text(PING_MESSAGE)

  async def _drain_client(self, websocket: WebSocket) -> None:
    # Client frames after the handshake carry nothing; reading them surfaces disconnects.
    while True:
      await websocket.receive_text()
