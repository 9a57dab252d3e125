"""Login throttle surface used by the authentication collaborator before and after it checks credentials."""

from __future__ import annotations

import logging
from typing import Annotated

import msgspec
from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from folio.api.deps import get_login_throttle, require_internal_secret
from folio.api.msgspec_utils import decode_msgspec_request, encode_msgspec_response
from folio.services.rate_limit import LoginThrottle

router = APIRouter(dependencies=[Depends(require_internal_secret)])
logger = logging.getLogger(__name__)


class LoginAttempt(msgspec.Struct):
  identity: str
  success: bool


class LoginAttemptResult(msgspec.Struct):
  allowed: bool
  locked: bool
  remaining: int


@router.post("/login-attempt")
async def record_login_attempt(request: Request, throttle: Annotated[LoginThrottle, Depends(get_login_throttle)]) -> Response:
  """Count one attempt and record its outcome; lockouts answer 423 and the hourly cap answers 429."""
  attempt = await decode_msgspec_request(request, LoginAttempt)
  result = await throttle.ensure_allowed(attempt.identity)

  locked = False
  if attempt.success:
    await throttle.record_success(attempt.identity)
  else:
    locked = await throttle.record_failure(attempt.identity)
  return encode_msgspec_response(LoginAttemptResult(allowed=True, locked=locked, remaining=result.remaining))
