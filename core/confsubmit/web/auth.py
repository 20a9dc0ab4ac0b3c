"""Authentication of API requests with JWTs."""

import logging
from typing import Any, Dict, Optional

import jwt
from flask import current_app, has_app_context

from ..domain import User

logger = logging.getLogger(__name__)


class InvalidToken(ValueError):
    """The token is missing, expired, malformed, or carries bad claims."""


def _secret_and_algorithm() -> tuple:
    config = current_app.config if has_app_context() else {}
    secret = config.get('JWT_SECRET')
    if not secret:
        raise InvalidToken('JWT_SECRET is not configured')
    return secret, config.get('JWT_ALGORITHM', 'HS256')


def decode(token: str) -> User:
    """
    Get the actor from an encoded JWT.

    The token must carry a ``sub`` claim (the user ID), and may carry
    ``email``, ``name`` and ``roles``.

    Raises
    ------
    :class:`.InvalidToken`

    """
    secret, algorithm = _secret_and_algorithm()
    try:
        claims = jwt.decode(token, secret, algorithms=[algorithm])
    except jwt.exceptions.InvalidTokenError as e:
        raise InvalidToken(f'Invalid token: {e}') from e
    if not claims.get('sub'):
        raise InvalidToken('Token does not identify a user')
    try:
        return User(str(claims['sub']),
                    email=claims.get('email', ''),
                    name=claims.get('name', ''),
                    roles=list(claims.get('roles', [])))
    except ValueError as e:
        raise InvalidToken(f'Invalid claims: {e}') from e


def encode(user: User, expires: Optional[int] = None,
           **extra: Any) -> str:
    """Generate a JWT for ``user``; used by tooling and tests."""
    secret, algorithm = _secret_and_algorithm()
    claims: Dict[str, Any] = {
        'sub': user.native_id,
        'email': user.email,
        'name': user.name,
        'roles': [role.value for role in user.roles],
    }
    if expires is not None:
        claims['exp'] = expires
    claims.update(extra)
    return jwt.encode(claims, secret, algorithm=algorithm)


def from_header(header: Optional[str]) -> User:
    """Get the actor from an ``Authorization: Bearer <token>`` header."""
    if not header:
        raise InvalidToken('Authorization header missing')
    parts = header.split(' ')
    if len(parts) != 2 or parts[0].lower() != 'bearer':
        raise InvalidToken('Authorization header malformed')
    return decode(parts[1])
