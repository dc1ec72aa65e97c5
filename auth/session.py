"""
auth/session.py -- Issue and clear sealed session cookies.

The cookie value is a token from Tokener.seal_string(email). Its lifetime is
enforced twice: the browser drops the cookie after max_age, and unseal()
rejects the token after ttl even if a client replays it later.

Cookie attributes:
  httponly=True: JS cannot read the cookie (XSS mitigation).
  samesite="lax": not sent on cross-site POST -- CSRF mitigation for most cases.
  secure: only sent over HTTPS when SECURE_COOKIES=true (set in production).
  max_age: matches the Tokener ttl so cookie and token expire together.
"""

from __future__ import annotations

import logging

from core.config import Settings
from securetoken import Tokener

logger = logging.getLogger("securetoken.auth")


def set_session_cookie(response, token: str, settings: Settings, max_age: int) -> None:
    """Write token as an httpOnly session cookie on the response."""
    response.set_cookie(
        settings.session_cookie_name,
        value=token,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
        max_age=max_age,
    )


def clear_session_cookie(response, settings: Settings) -> None:
    """Expire the session cookie on the response."""
    response.delete_cookie(
        settings.session_cookie_name,
        httponly=True,
        samesite="lax",
        secure=settings.secure_cookies,
    )


def start_session(response, tokener: Tokener, settings: Settings, email: str) -> str:
    """Seal email into a token, set it as the session cookie, and return it.

    Raises RandomnessUnavailable if the token cannot be sealed; no cookie is
    written in that case.
    """
    token = tokener.seal_string(email)
    set_session_cookie(response, token, settings, max_age=int(tokener.ttl.total_seconds()))
    logger.info("Session started")
    return token
