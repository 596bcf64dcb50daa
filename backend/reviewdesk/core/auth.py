from uuid import UUID

import jwt
from fastapi import Header, HTTPException, Request

from reviewdesk.core.config import settings


def decode_access_token(token: str) -> UUID:
    """Verify a Supabase access token and return the user id from ``sub``."""
    payload = jwt.decode(
        token,
        settings.SUPABASE_JWT_SECRET,
        algorithms=["HS256"],
        audience=settings.SUPABASE_JWT_AUDIENCE,
    )
    return UUID(payload["sub"])


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization")
    if not auth_header:
        return None
    if not auth_header.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="Invalid authorization header format")
    token = auth_header[7:].strip()
    if not token:
        raise HTTPException(status_code=401, detail="No authorization header")
    return token


def get_current_user(request: Request) -> UUID:
    """Resolve the calling user from the ``Authorization: Bearer`` header."""
    token = _bearer_token(request)
    if token is None:
        raise HTTPException(status_code=401, detail="No authorization header")
    if not settings.SUPABASE_JWT_SECRET:
        raise HTTPException(status_code=401, detail="Unauthorized")
    try:
        return decode_access_token(token)
    except jwt.ExpiredSignatureError:
        raise HTTPException(status_code=401, detail="Token has expired") from None
    except (jwt.InvalidTokenError, KeyError, ValueError):
        raise HTTPException(status_code=401, detail="Unauthorized") from None


def get_optional_user(request: Request) -> UUID | None:
    """Like ``get_current_user`` but anonymous callers resolve to None."""
    try:
        return get_current_user(request)
    except HTTPException:
        return None


def get_google_token(x_google_token: str | None = Header(None, alias="X-Google-Token")) -> str:
    if not x_google_token:
        raise HTTPException(
            status_code=400,
            detail=(
                "Missing Google access token. Send Supabase session.provider_token "
                "in 'X-Google-Token' header."
            ),
        )
    return x_google_token
