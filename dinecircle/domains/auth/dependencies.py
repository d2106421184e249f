# dinecircle/domains/auth/dependencies.py
import logging
from typing import Any

import jwt
from fastapi import Depends, Header, HTTPException, status
from jwt import PyJWKClient

from dinecircle.core.settings import settings
from dinecircle.shared.exceptions import InvalidTokenError

from .types import SupabaseJwtPayload

logger = logging.getLogger(__name__)

JWKS_URL = f"{settings.SUPABASE_URL}/auth/v1/jwks" if settings.SUPABASE_URL else None

_jwks_client = PyJWKClient(JWKS_URL) if JWKS_URL else None


def _verification_key(token: str) -> tuple[Any, str]:
    """
    Key and algorithm for verifying ``token``: the shared JWT_SECRET in
    development, the project's published JWKS otherwise.
    """
    if settings.JWT_SECRET:
        return settings.JWT_SECRET, "HS256"
    if not _jwks_client:
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Supabase not configured",
        )
    return _jwks_client.get_signing_key_from_jwt(token).key, "RS256"


def decode_supabase_jwt(token: str) -> SupabaseJwtPayload:
    """Verify a Supabase access token and return its claims."""
    try:
        key, algorithm = _verification_key(token)
        claims = jwt.decode(
            token, key, algorithms=[algorithm], options={"verify_aud": False}
        )
    except jwt.PyJWTError as e:
        logger.info(f"Rejected access token: {e}")
        raise InvalidTokenError("Invalid or expired token")
    return SupabaseJwtPayload.model_validate(claims)


def get_token_payload(authorization: str = Header(None)) -> SupabaseJwtPayload:
    """Claims of the bearer token in the Authorization header."""
    scheme, _, token = (authorization or "").partition(" ")
    if scheme != "Bearer" or not token:
        raise InvalidTokenError("Missing token")
    return decode_supabase_jwt(token)


def get_current_user_id(
    payload: SupabaseJwtPayload = Depends(get_token_payload),
) -> str:
    """
    The authenticated user's id (the ``sub`` claim).

    Permission and audit calls take this id explicitly; there is no
    ambient current user.
    """
    if not payload.sub:
        raise InvalidTokenError("Token has no subject")
    return payload.sub
