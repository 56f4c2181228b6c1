# auth.py
from __future__ import annotations

import functools
import logging
from typing import Optional

import requests
from flask import current_app, g, request

from errors import ExternalServiceError, UnauthenticatedError

LOG = logging.getLogger("jobflow.auth")

DEV_USER_ID = "dev_user_123"
TIMEOUT = 15


def bearer_token(header: Optional[str]) -> Optional[str]:
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


class TokenVerifier:
    """Exchanges a bearer token for a user id at the auth provider.

    Expected 2xx response: ``{"sub": "<user id>", ...}``. Anything else on a
    successful status is an out-of-contract answer from the provider.
    """

    def __init__(self, secret: str, verify_url: str, dev_bypass: bool = False, session=None):
        self.secret = secret
        self.verify_url = verify_url
        self.dev_bypass = dev_bypass
        self.session = session or requests.Session()

    def resolve(self, authorization: Optional[str]) -> str:
        if self.dev_bypass:
            LOG.debug("development mode - bypassing token verification")
            return DEV_USER_ID

        token = bearer_token(authorization)
        if not token:
            raise UnauthenticatedError()
        if not self.secret:
            raise ExternalServiceError("auth provider secret is not configured")

        try:
            r = self.session.post(
                self.verify_url,
                headers={"Authorization": f"Bearer {self.secret}", "Content-Type": "application/json"},
                json={"token": token},
                timeout=TIMEOUT,
            )
        except requests.RequestException as e:
            LOG.error("token verification error: %s", e)
            raise UnauthenticatedError()

        if not r.ok:
            LOG.warning("token verification failed: %s", r.status_code)
            raise UnauthenticatedError()

        try:
            data = r.json()
        except ValueError:
            raise ExternalServiceError("auth provider returned a non-JSON body")
        sub = data.get("sub") if isinstance(data, dict) else None
        if not isinstance(sub, str) or not sub:
            raise ExternalServiceError("auth provider response has no 'sub'")
        return sub


def login_required(fn):
    """Resolve the caller before the view runs; the id lands in ``g.user_id``."""

    @functools.wraps(fn)
    def wrapper(*args, **kwargs):
        verifier: TokenVerifier = current_app.extensions["jobflow"]["verifier"]
        g.user_id = verifier.resolve(request.headers.get("Authorization"))
        return fn(*args, **kwargs)

    return wrapper
