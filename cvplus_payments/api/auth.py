"""
Caller identity from bearer JWTs.

Handlers that act on a user's data compare the verified caller uid with
the userId in the request body; a mismatch is permission-denied.
"""

import logging
from dataclasses import dataclass
from typing import Optional

import jwt
from fastapi import Request

from cvplus_payments.config.settings import PaymentsSettings, get_settings
from cvplus_payments.errors import PermissionDeniedError, UnauthenticatedError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerIdentity:
    """Verified caller."""
    uid: str
    email: Optional[str] = None


def decode_caller_token(token: str, settings: PaymentsSettings) -> CallerIdentity:
    """
    Verify a bearer token and extract the caller.

    Raises:
        UnauthenticatedError: Token missing, expired, invalid or without sub
    """
    if not settings.auth_jwt_secret:
        logger.error("AUTH_JWT_SECRET not configured; rejecting authenticated call")
        raise UnauthenticatedError("User must be authenticated")

    options = {"require": ["sub"], "verify_aud": bool(settings.auth_jwt_audience)}
    try:
        payload = jwt.decode(
            token,
            settings.auth_jwt_secret,
            algorithms=[settings.auth_jwt_algorithm],
            audience=settings.auth_jwt_audience,
            options=options,
        )
    except jwt.ExpiredSignatureError:
        raise UnauthenticatedError("Authentication token has expired")
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid authentication token", extra={"error": str(e)})
        raise UnauthenticatedError("User must be authenticated")

    return CallerIdentity(uid=str(payload["sub"]), email=payload.get("email"))


def get_caller(request: Request) -> CallerIdentity:
    """FastAPI dependency resolving the authenticated caller."""
    authorization = request.headers.get("Authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        raise UnauthenticatedError("User must be authenticated")
    return decode_caller_token(token.strip(), get_settings())


def require_same_user(caller: CallerIdentity, user_id: Optional[str]) -> None:
    """
    Raises:
        PermissionDeniedError: caller uid differs from user_id
    """
    if caller.uid != user_id:
        logger.warning("User ID mismatch", extra={
            "caller_uid": caller.uid,
            "requested_user_id": user_id,
        })
        raise PermissionDeniedError("User ID mismatch")

