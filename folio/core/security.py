from __future__ import annotations

from dataclasses import dataclass, field
from typing import Annotated, Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from starlette.concurrency import run_in_threadpool

from folio.core.firebase import verify_id_token

security_scheme = HTTPBearer()

MUST_CHANGE_PASSWORD_CLAIM = "must_change_password"


@dataclass(frozen=True)
class Identity:
  """Verified caller identity derived from an ID token."""

  uid: str
  claims: dict[str, Any] = field(default_factory=dict, hash=False, compare=False)

  @property
  def must_change_password(self) -> bool:
    return bool(self.claims.get(MUST_CHANGE_PASSWORD_CLAIM))


class AuthenticationError(Exception):
  """Raised when a bearer token cannot be turned into an identity."""


async def authenticate_token(id_token: str) -> Identity:
  """Verify an ID token off the event loop and return the identity it names."""
  if not id_token:
    raise AuthenticationError("missing token")
  decoded_claims = await run_in_threadpool(verify_id_token, id_token)
  if not decoded_claims:
    raise AuthenticationError("invalid token")
  uid = decoded_claims.get("uid") or decoded_claims.get("sub")
  if not uid:
    raise AuthenticationError("token missing uid")
  return Identity(uid=str(uid), claims=dict(decoded_claims))


async def get_current_identity(token: Annotated[HTTPAuthorizationCredentials, Depends(security_scheme)]) -> Identity:
  """Verify the bearer token and block accounts that must reset their password first."""
  try:
    identity = await authenticate_token(token.credentials)
  except AuthenticationError as exc:
    raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid authentication credentials", headers={"WWW-Authenticate": "Bearer"}) from exc

  if identity.must_change_password:
    raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Password change required")
  return identity
