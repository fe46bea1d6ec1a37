"""
middleware/auth_middleware.py — Bearer token verification.

Access tokens are issued by the identity service, signed with the shared
JWT_SECRET_KEY. This service never issues or refreshes tokens; it only
checks them:

  1. Authorization header present and of the form "Bearer <token>"
  2. Signature, expiry and (when JWT_AUDIENCE is set) audience verified
  3. Integer `sub` claim attached to flask.g.user_id

Authentication only (401). Whether the caller may see a group is decided
by services/expense_source.require_group_member (403).
"""

from __future__ import annotations

import functools
from typing import Callable

import jwt
from flask import current_app, g, request

from divvy.app.errors import AppError, ErrorCode


def require_auth(f: Callable) -> Callable:
    """
    Route decorator that rejects unauthenticated requests.

    Usage:
        @balances_bp.route("/<int:group_id>/balances/summary")
        @require_auth
        def get_summary(group_id):
            caller = g.user_id
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        g.user_id = _authenticate_request()
        return f(*args, **kwargs)

    return decorated


def _bearer_token() -> str:
    auth_header = request.headers.get("Authorization", "")
    if not auth_header:
        raise AppError(
            ErrorCode.TOKEN_MISSING,
            "Authentication required. Provide a Bearer token in the Authorization header.",
            401,
        )

    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip() or " " in token.strip():
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "Authorization header must be in the format: Bearer <token>.",
            401,
        )
    return token.strip()


def _authenticate_request() -> int:
    """Verifies the request's token and returns the caller's user id."""
    token = _bearer_token()
    audience = current_app.config.get("JWT_AUDIENCE")

    try:
        payload = jwt.decode(
            token,
            current_app.config["JWT_SECRET_KEY"],
            algorithms=[current_app.config.get("JWT_ALGORITHM", "HS256")],
            audience=audience,
            options={"require": ["exp", "sub"], "verify_aud": audience is not None},
        )
    except jwt.ExpiredSignatureError:
        raise AppError(
            ErrorCode.TOKEN_EXPIRED,
            "The access token has expired. Obtain a new one from the identity service.",
            401,
        )
    except jwt.InvalidTokenError:
        # Bad signature, malformed token, missing claims, wrong audience.
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The access token is invalid.",
            401,
        )

    try:
        return int(payload["sub"])
    except (TypeError, ValueError):
        raise AppError(
            ErrorCode.TOKEN_INVALID,
            "The 'sub' claim in the access token is not a valid user ID.",
            401,
        )
