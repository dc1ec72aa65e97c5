"""
api/routes/v1/session.py -- Session introspection endpoint.

Routes:
  GET /api/v1/session -- email sealed in the caller's session token (requires auth)

Accepts the token from the session cookie or an Authorization: Bearer header.
An expired token is reported as code "session_expired"; every other failure is
the generic "unauthorized".
"""

from fastapi import APIRouter, Depends

from api.models import SessionResponse
from auth.dependencies import get_current_session
from auth.models import Session

# Auth policy:
# - GET /api/v1/session: requires a valid session token
router = APIRouter()


@router.get("/session", response_model=SessionResponse)
def get_session(session: Session = Depends(get_current_session)) -> SessionResponse:
    """Return the identity carried by the presented token."""
    return SessionResponse(email=session.email)
