# backend/schedule_api/auth.py
"""
Authentication gate.

The identity service signs an access token (JWT) for every login and the
browser carries it in a session cookie. The gate verifies that token and
hands the subject (the user id) to the route; anything else is rejected
with a generic 401.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Dict, Optional

import jwt
from fastapi import Depends, Request

from .errors import Unauthenticated

log = logging.getLogger(__name__)

DEFAULT_COOKIE_NAME = "sb-access-token"


class SessionVerifier:
    """Resolve a session token to a user id, or ``None`` when it is not valid."""

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        audience: Optional[str] = "authenticated",
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        self.secret = secret
        self.algorithm = algorithm
        self.audience = audience or None
        self.cookie_name = cookie_name
        if not secret:
            log.error("AUTH_JWT_SECRET is not set; every session will be rejected")

    def resolve(self, token: Optional[str]) -> Optional[str]:
        if not token or not self.secret:
            return None

        options: Dict[str, Any] = {"require": ["exp", "sub"]}
        kwargs: Dict[str, Any] = {}
        if self.audience:
            kwargs["audience"] = self.audience
        else:
            options["verify_aud"] = False

        try:
            claims = jwt.decode(
                token,
                self.secret,
                algorithms=[self.algorithm],
                options=options,
                **kwargs,
            )
        except jwt.PyJWTError as exc:
            log.debug("Rejected session token: %s", exc)
            return None

        subject = claims.get("sub")
        if not isinstance(subject, str) or not subject:
            return None
        return subject

    def resolve_request(self, request: Request) -> Optional[str]:
        return self.resolve(request.cookies.get(self.cookie_name))


_verifier: Optional[SessionVerifier] = None


def get_session_verifier() -> SessionVerifier:
    """Process-wide verifier, built from the environment on first use."""
    global _verifier
    if _verifier is None:
        _verifier = SessionVerifier(
            secret=os.getenv("AUTH_JWT_SECRET", ""),
            algorithm=os.getenv("AUTH_JWT_ALGORITHM", "HS256"),
            audience=os.getenv("AUTH_JWT_AUDIENCE", "authenticated"),
            cookie_name=os.getenv("SESSION_COOKIE_NAME", DEFAULT_COOKIE_NAME),
        )
    return _verifier


def reset_session_verifier() -> None:
    global _verifier
    _verifier = None


def get_current_user_id(
    request: Request,
    verifier: SessionVerifier = Depends(get_session_verifier),
) -> str:
    """FastAPI dependency: the authenticated user's id, or 401."""
    user_id = verifier.resolve_request(request)
    if user_id is None:
        raise Unauthenticated()
    return user_id
