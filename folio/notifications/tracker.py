"""Client-side filter that matches notifications to the submission being tracked."""

from __future__ import annotations

import logging

from folio.jobs.models import DocumentKind
from folio.notifications.contracts import NotificationEvent, decode_event

logger = logging.getLogger(__name__)


class CorrelationTracker:
  """Accepts only the event for the tracked (kind, target, correlation id), and only once.

  Channels are per user, so reconnects and overlapping submissions can replay or
  interleave events; both the correlation id and the target must match.
  """

  def __init__(self) -> None:
    self._kind: DocumentKind | None = None
    self._target_id: int | None = None
    self._correlation_id: str | None = None

  @property
  def active(self) -> bool:
    return self._correlation_id is not None

  @property
  def correlation_id(self) -> str | None:
    return self._correlation_id

  def track(self, kind: DocumentKind, target_id: int, correlation_id: str) -> None:
    """Start tracking a submission, replacing whatever was tracked before."""
    if not correlation_id:
      raise ValueError("correlation_id is required to track a submission")
    self._kind = kind
    self._target_id = target_id
    self._correlation_id = correlation_id

  def reset(self) -> None:
    self._kind = None
    self._target_id = None
    self._correlation_id = None

  def accepts(self, message: NotificationEvent | bytes | str) -> NotificationEvent | None:
    """Return the event when it belongs to the tracked submission; a terminal match ends tracking."""
    event = message if isinstance(message, NotificationEvent) else decode_event(message)
    if event is None or not self.active:
      return None
    if event.correlation_id != self._correlation_id:
      logger.debug("Ignoring notification correlation_id=%s expected=%s", event.correlation_id, self._correlation_id)
      return None
    if event.kind != self._kind or event.target_id != self._target_id:
      logger.debug("Ignoring notification for target_id=%s expected=%s", event.target_id, self._target_id)
      return None
    # Every event is terminal, so later duplicates are dropped.
    self.reset()
    return event
