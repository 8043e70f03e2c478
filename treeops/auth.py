"""
Google sign-in and signed session cookies.

The OAuth authorization-code flow needs no server-side store. The ``state``
parameter is a short-lived signed token that is also pinned in a cookie on
the browser that started sign-in. The session itself is an HS256 JWT stored
in a cookie.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional
from urllib.parse import urlencode

import jwt
import requests

from treeops.config import Settings
from treeops.schemas import SessionResponse, SessionUser

logger = logging.getLogger(__name__)

GOOGLE_AUTHORIZE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_USERINFO_URL = "https://openidconnect.googleapis.com/v1/userinfo"
OAUTH_SCOPES = "openid email profile"

SESSION_COOKIE = "treeops_session"
STATE_COOKIE = "treeops_oauth_state"
JWT_ALGORITHM = "HS256"
STATE_EXPIRE_MINUTES = 10
REQUEST_TIMEOUT = 30  # seconds


class AuthNotConfiguredError(RuntimeError):
    """Raised when Google client credentials or the session secret are missing."""


class SignInError(RuntimeError):
    """Raised when a sign-in attempt cannot be completed."""


@dataclass
class AuthConfig:
    client_id: str
    client_secret: str
    session_secret: str
    redirect_url: str
    session_max_age_seconds: int
    allowed_email_domain: Optional[str] = None

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthConfig":
        missing = [
            name
            for name in ("google_client_id", "google_client_secret", "session_secret")
            if not getattr(settings, name)
        ]
        if missing:
            logger.error("Missing auth settings: %s", ", ".join(missing))
            raise AuthNotConfiguredError("Authentication not configured properly")
        return cls(
            client_id=settings.google_client_id,
            client_secret=settings.google_client_secret,
            session_secret=settings.session_secret,
            redirect_url=settings.auth_redirect_url,
            session_max_age_seconds=settings.session_max_age_seconds,
            allowed_email_domain=settings.allowed_email_domain,
        )


def _encode(payload: dict, secret: str) -> str:
    return jwt.encode(payload, secret, algorithm=JWT_ALGORITHM)


def _decode(token: str, secret: str, token_type: str) -> Optional[dict]:
    try:
        payload = jwt.decode(token, secret, algorithms=[JWT_ALGORITHM])
    except jwt.InvalidTokenError:
        return None
    if payload.get("type") != token_type:
        return None
    return payload


def create_state_token(config: AuthConfig) -> str:
    now = datetime.now(timezone.utc)
    return _encode(
        {
            "nonce": secrets.token_urlsafe(16),
            "iat": now,
            "exp": now + timedelta(minutes=STATE_EXPIRE_MINUTES),
            "type": "oauth_state",
        },
        config.session_secret,
    )


def verify_state_token(
    config: AuthConfig, state: Optional[str], expected: Optional[str]
) -> bool:
    """
    Check that the callback echoes the state stored in this browser's cookie
    and that the state is a live token signed by us.
    """
    if not state or not expected:
        return False
    if not secrets.compare_digest(state.encode(), expected.encode()):
        return False
    return _decode(state, config.session_secret, "oauth_state") is not None


def authorization_url(config: AuthConfig, state: str) -> str:
    params = {
        "client_id": config.client_id,
        "redirect_uri": config.redirect_url,
        "response_type": "code",
        "scope": OAUTH_SCOPES,
        "access_type": "online",
        "prompt": "select_account",
        "state": state,
    }
    return f"{GOOGLE_AUTHORIZE_URL}?{urlencode(params)}"


def exchange_code(config: AuthConfig, code: str) -> dict:
    """Trade an authorization code for the signed-in user's profile."""
    response = requests.post(
        GOOGLE_TOKEN_URL,
        data={
            "code": code,
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "redirect_uri": config.redirect_url,
            "grant_type": "authorization_code",
        },
        timeout=REQUEST_TIMEOUT,
    )
    response.raise_for_status()
    access_token = response.json().get("access_token")
    if not access_token:
        raise SignInError("Token response did not include an access token")

    profile = requests.get(
        GOOGLE_USERINFO_URL,
        headers={"Authorization": f"Bearer {access_token}"},
        timeout=REQUEST_TIMEOUT,
    )
    profile.raise_for_status()
    return profile.json()


def is_sign_in_allowed(config: AuthConfig, profile: dict) -> bool:
    if not config.allowed_email_domain:
        return True
    email = profile.get("email") or ""
    return email.lower().endswith("@" + config.allowed_email_domain.lower())


def create_session_token(config: AuthConfig, profile: dict) -> str:
    now = datetime.now(timezone.utc)
    return _encode(
        {
            "sub": str(profile.get("sub") or profile.get("email")),
            "name": profile.get("name"),
            "email": profile.get("email"),
            "picture": profile.get("picture"),
            "iat": now,
            "exp": now + timedelta(seconds=config.session_max_age_seconds),
            "type": "session",
        },
        config.session_secret,
    )


def read_session(config: AuthConfig, token: Optional[str]) -> SessionResponse:
    """Decode the session cookie; an empty response means signed out."""
    if not token:
        return SessionResponse()
    payload = _decode(token, config.session_secret, "session")
    if payload is None:
        return SessionResponse()
    expires = datetime.fromtimestamp(payload["exp"], tz=timezone.utc)
    return SessionResponse(
        user=SessionUser(
            id=payload["sub"],
            name=payload.get("name"),
            email=payload.get("email"),
            image=payload.get("picture"),
        ),
        expires=expires.isoformat(),
    )
