"""
auth/dependencies.py -- FastAPI Depends() helpers for session authentication.

Two token sources are checked in priority order:
  1. Session cookie -- set by the web UI login flow.
  2. Authorization: Bearer <token> header -- API clients holding a token.

try_get_session() is the strict-but-soft variant: None when no token was
presented, TokenRejected when one was presented and failed to verify.
get_current_session() wraps it and raises HTTP 401 for both.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import Session
from securetoken import Tokener, TokenExpired, TokenRejected


def _presented_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(request.app.state.settings.session_cookie_name)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_session(request: Request) -> Session | None:
    """Return the verified Session, or None if the request carries no token.

    Raises:
        TokenInvalid / TokenExpired: a token was presented but did not verify.
            Callers decide whether to clear the cookie or report the reason.
    """
    token = _presented_token(request)
    if token is None:
        return None
    tokener: Tokener = request.app.state.tokener
    return Session(email=tokener.unseal_string(token), token=token)


def get_current_session(request: Request) -> Session:
    """Require a valid session. Raises HTTP 401 if absent, invalid, or expired.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(session: Session = Depends(get_current_session)): ...
    """
    try:
        session = try_get_session(request)
    except TokenExpired:
        raise HTTPException(
            status_code=401,
            detail={"code": "session_expired", "message": "Session expired. Sign in again."},
        ) from None
    except TokenRejected:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        ) from None
    if session is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return session
