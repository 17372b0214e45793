import logging
from functools import lru_cache
from typing import Optional

import httpx
from jose import jwt, JWTError
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.core.config import settings

logger = logging.getLogger(__name__)

# Bearer token extractor (auto_error=False allows optional auth)
security = HTTPBearer(auto_error=False)

ALLOWED_ALGORITHMS = ["RS256", "ES256", "EdDSA", "HS256"]


class AuthError(Exception):
    """Raised by bearer authentication outside of FastAPI dependencies."""


@lru_cache(maxsize=1)
def get_jwks() -> dict:
    """Fetch Supabase JWKS for JWT verification (cached)."""
    jwks_url = f"{settings.supabase_url}/auth/v1/.well-known/jwks.json"
    response = httpx.get(jwks_url, timeout=settings.jwks_timeout)
    response.raise_for_status()
    return response.json()


def _find_key(jwks: dict, kid: str | None) -> dict | None:
    for k in jwks.get("keys", []):
        if k.get("kid") == kid:
            return k
    return None


def decode_token(token: str) -> dict:
    """Verify a Supabase JWT and return its payload.

    Raises:
        AuthError: if the token is malformed, signed with an unknown key,
            uses an unsupported algorithm, fails verification or the signing
            keys cannot be fetched.
    """
    try:
        unverified_header = jwt.get_unverified_header(token)
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}")

    alg = unverified_header.get("alg")
    kid = unverified_header.get("kid")
    if not alg:
        raise AuthError("Invalid token: missing algorithm")
    if alg not in ALLOWED_ALGORITHMS:
        raise AuthError(f"Invalid token: unsupported algorithm {alg}")

    try:
        key = _find_key(get_jwks(), kid)
        if not key:
            # JWKS might be stale, clear cache and retry once
            logger.warning(f"JWT kid={kid} not found in cached JWKS, refreshing...")
            get_jwks.cache_clear()
            key = _find_key(get_jwks(), kid)
    except httpx.HTTPError as e:
        logger.error(f"Failed to fetch JWKS: {e}")
        raise AuthError("Invalid token: signing keys unavailable")

    if not key:
        logger.error(f"JWT kid={kid} not found even after JWKS refresh")
        raise AuthError(f"Invalid token: key not found for kid={kid}")

    try:
        return jwt.decode(
            token,
            key,
            algorithms=[alg],
            audience=settings.jwt_audience,
            options={"verify_aud": True}
        )
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}")


def verify_jwt(token: str) -> dict:
    """Verify a Supabase JWT, raising 401 on failure."""
    try:
        return decode_token(token)
    except AuthError as e:
        logger.warning(f"JWT verification failed: {e}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
            headers={"WWW-Authenticate": "Bearer"},
        )


def authenticate_bearer(authorization: str | None) -> dict:
    """Resolve the principal from a raw Authorization header.

    Used by the function-style handlers, which report every failure as a
    plain error message.
    """
    if not authorization:
        raise AuthError("Missing authorization header")
    token = authorization.replace("Bearer ", "")
    try:
        payload = decode_token(token)
    except AuthError as e:
        logger.warning(f"Bearer authentication failed: {e}")
        raise AuthError("Unauthorized")
    if not payload.get("sub"):
        raise AuthError("Unauthorized")
    return payload


def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[dict]:
    """Get current authenticated user from JWT (optional auth)."""
    if not credentials:
        return None
    return verify_jwt(credentials.credentials)


def require_auth(
    credentials: HTTPAuthorizationCredentials = Depends(security)
) -> dict:
    """Require authentication - raises 401 if not authenticated."""
    if not credentials:
        logger.warning("Auth required but no Bearer token provided")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return verify_jwt(credentials.credentials)
