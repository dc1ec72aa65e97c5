"""
web/routes.py -- Jinja2 template routes for the SecureToken session demo.

Routes:
  GET  /        -- show the signed-in email and token, or a login form
  POST /login   -- seal the submitted email into the session cookie
  POST /logout  -- clear the session cookie

No password is checked: the point is the cookie, not the login. Whatever
email is submitted becomes the session identity.

A cookie that fails to unseal is deleted on the spot. Leaving it would make
every later request take the rejection path again.
"""

import logging
import re
from pathlib import Path

from fastapi import APIRouter, Form, Request
from fastapi.responses import HTMLResponse, RedirectResponse
from fastapi.templating import Jinja2Templates

from auth.dependencies import try_get_session
from auth.session import clear_session_cookie, start_session
from securetoken import TokenExpired, TokenRejected

logger = logging.getLogger("securetoken.web")

templates = Jinja2Templates(directory=str(Path(__file__).parent / "templates"))
router = APIRouter()

# Deliberately loose: the browser's type="email" does the real check. This
# only keeps obvious junk and oversized values out of the cookie.
_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+$")
_MAX_EMAIL_LEN = 254

# Whitelist of notices. Rejection reasons are mapped here rather than echoed.
_NOTICES: dict[str, str] = {
    "expired": "Your session has expired. Please sign in again.",
    "invalid": "Your session could not be verified. Please sign in again.",
}


def _render(request: Request, status_code: int = 200, **context) -> HTMLResponse:
    context.setdefault("session", None)
    context.setdefault("notice", None)
    context.setdefault("error", None)
    context.setdefault("email", None)
    return templates.TemplateResponse(request, "home.html", context, status_code=status_code)


@router.get("/", response_class=HTMLResponse)
async def home(request: Request) -> HTMLResponse:
    """Render the home page for the current session state."""
    try:
        session = try_get_session(request)
    except TokenExpired:
        resp = _render(request, notice=_NOTICES["expired"])
        clear_session_cookie(resp, request.app.state.settings)
        return resp
    except TokenRejected:
        logger.info("Discarding session cookie that failed verification")
        resp = _render(request, notice=_NOTICES["invalid"])
        clear_session_cookie(resp, request.app.state.settings)
        return resp
    return _render(request, session=session)


@router.post("/login")
async def login(request: Request, email: str = Form(...)):
    """Seal email into a session cookie and redirect home."""
    email = email.strip()
    if len(email) > _MAX_EMAIL_LEN or not _EMAIL_RE.match(email):
        return _render(request, status_code=400, error="Enter a valid email address.", email=email[:_MAX_EMAIL_LEN])

    resp = RedirectResponse("/", status_code=302)
    start_session(resp, request.app.state.tokener, request.app.state.settings, email)
    return resp


@router.post("/logout")
async def logout(request: Request) -> RedirectResponse:
    """Clear the session cookie and redirect home."""
    resp = RedirectResponse("/", status_code=302)
    clear_session_cookie(resp, request.app.state.settings)
    return resp
