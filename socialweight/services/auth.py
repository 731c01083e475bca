"""
Bearer-token caller resolution.

Tokens are HS256 JWTs signed with SECRET_KEY: `sub` is the user id, an
optional `role: admin` claim (or membership in ADMIN_USER_IDS) grants
elevated privilege. Issuing tokens belongs to the auth service; the
create_access_token() helper exists for tooling and tests.
"""
import logging
from dataclasses import dataclass
from functools import wraps
from datetime import datetime, timedelta, timezone
from typing import Optional

from flask import g, request
from jose import JWTError, jwt

from socialweight.config import SECRET_KEY, JWT_ALGORITHM, ADMIN_USER_IDS

logger = logging.getLogger('services.auth')


class AuthError(Exception):
    """Missing, malformed, expired or otherwise invalid credentials."""


@dataclass(frozen=True)
class Caller:
    user_id: str
    elevated: bool = False

    def can_act_for(self, user_id: str) -> bool:
        return self.elevated or user_id == self.user_id


def create_access_token(user_id: str, role: str = None,
                        expires_delta: Optional[timedelta] = None) -> str:
    to_encode = {'sub': user_id}
    if role:
        to_encode['role'] = role
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode['exp'] = expire
    return jwt.encode(to_encode, SECRET_KEY, algorithm=JWT_ALGORITHM)


def resolve_caller(auth_header: Optional[str]) -> Caller:
    """Validate an Authorization header and return the calling identity."""
    if not auth_header:
        raise AuthError('Missing Authorization header')

    scheme, _, token = auth_header.partition(' ')
    if scheme.lower() != 'bearer' or not token.strip():
        raise AuthError('Expected a Bearer token')

    try:
        payload = jwt.decode(token.strip(), SECRET_KEY, algorithms=[JWT_ALGORITHM])
    except JWTError as e:
        logger.info("Rejected token: %s", e)
        raise AuthError('Invalid token') from e

    user_id = payload.get('sub')
    if not user_id:
        raise AuthError('Token has no subject')

    elevated = payload.get('role') == 'admin' or user_id in ADMIN_USER_IDS
    return Caller(user_id=str(user_id), elevated=elevated)


def require_caller(f):
    """Route decorator: resolve the bearer token into g.caller or raise AuthError (401)."""
    @wraps(f)
    def wrapper(*args, **kwargs):
        g.caller = resolve_caller(request.headers.get('Authorization'))
        return f(*args, **kwargs)
    return wrapper
