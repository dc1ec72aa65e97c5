"""
auth/models.py -- Domain dataclasses for session entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; routes and dependencies do the work.

Layer rule: no imports from api/ or web/.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class Session:
    """A verified session recovered from a sealed cookie.

    There is no server-side record behind this object. email is whatever the
    login handler sealed; token is the raw cookie value, kept so the demo page
    can display it.
    """

    email: str
    token: str
