"""Bearer-token identity and role checks for portal endpoints.

Tokens are issued by the identity service; this module only verifies them and
turns the claims into a `Principal`.
"""

from datetime import datetime, timedelta, timezone
from typing import Callable

import jwt
from fastapi import Depends, Header, Request
from pydantic import BaseModel, ConfigDict

from payportal.common.config import settings
from payportal.common.errors import Forbidden, InvalidToken, RateLimited, TokenExpired, Unauthenticated
from payportal.common.logging import bind_caller, logger

CUSTOMER = "customer"
EMPLOYEE = "employee"
ROLES = frozenset({CUSTOMER, EMPLOYEE})


class Principal(BaseModel):
    """Authenticated caller as seen by the services."""

    model_config = ConfigDict(frozen=True)

    user_id: str
    email: str = ""
    role: str

    @property
    def display_name(self) -> str:
        return self.email or self.user_id


def issue_token(user_id: str, email: str, role: str, expires_in_minutes: int | None = None) -> str:
    """Sign a portal token carrying `userId`, `email` and `role` claims."""

    if role not in ROLES:
        raise ValueError(f"unknown role {role!r}")
    now = datetime.now(timezone.utc)
    minutes = settings.jwt_expires_minutes if expires_in_minutes is None else expires_in_minutes
    payload = {
        "userId": user_id,
        "email": email,
        "role": role,
        "iat": now,
        "exp": now + timedelta(minutes=minutes),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> Principal:
    try:
        claims = jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError as exc:
        raise TokenExpired() from exc
    except jwt.InvalidTokenError as exc:
        raise InvalidToken() from exc

    user_id = claims.get("userId")
    role = claims.get("role")
    if not isinstance(user_id, str) or not user_id or role not in ROLES:
        raise InvalidToken()
    return Principal(user_id=user_id, email=str(claims.get("email") or ""), role=role)


def _client_key(request: Request) -> str:
    return request.client.host if request.client else "unknown"


async def get_principal(request: Request, authorization: str | None = Header(default=None)) -> Principal:
    """Resolve the bearer token; failed attempts count against the `auth` limiter.

    Kept async so the caller bound to the log context reaches the sync handlers.
    """

    try:
        if not authorization or not authorization.startswith("Bearer "):
            raise Unauthenticated()
        principal = decode_token(authorization[len("Bearer "):].strip())
    except Unauthenticated as exc:
        limiters = getattr(request.app.state, "rate_limiters", None)
        if limiters is not None:
            try:
                limiters["auth"].check(_client_key(request))
            except RateLimited:
                logger.warning("auth rate limit exceeded client=%s", _client_key(request))
                raise
        logger.info("authentication failed code=%s path=%s", exc.code, request.url.path)
        raise
    bind_caller(principal.user_id, principal.role)
    return principal


def require_roles(*roles: str) -> Callable[..., Principal]:
    """Dependency factory rejecting callers whose role is not in `roles`."""

    allowed = frozenset(roles)

    def dependency(principal: Principal = Depends(get_principal)) -> Principal:
        if principal.role not in allowed:
            raise Forbidden()
        return principal

    return dependency
