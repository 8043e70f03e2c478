"""
Google sign-in routes and session display.
"""

from __future__ import annotations

import logging
from typing import Optional

import requests
from fastapi import APIRouter, Cookie, Depends, HTTPException, Query
from fastapi.responses import RedirectResponse

from treeops import auth
from treeops.auth import AuthConfig, AuthNotConfiguredError, SignInError
from treeops.config import Settings, get_settings
from treeops.schemas import SessionResponse

logger = logging.getLogger(__name__)

router = APIRouter()


def get_auth_config(settings: Settings = Depends(get_settings)) -> AuthConfig:
    try:
        return AuthConfig.from_settings(settings)
    except AuthNotConfiguredError as exc:
        raise HTTPException(
            status_code=500, detail="Authentication not configured properly"
        ) from exc


@router.get("/signin")
def signin(config: AuthConfig = Depends(get_auth_config)):
    state = auth.create_state_token(config)
    response = RedirectResponse(auth.authorization_url(config, state), status_code=302)
    response.set_cookie(
        auth.STATE_COOKIE,
        state,
        max_age=auth.STATE_EXPIRE_MINUTES * 60,
        httponly=True,
        samesite="lax",
        secure=config.redirect_url.startswith("https://"),
    )
    return response


@router.get("/callback")
def callback(
    code: Optional[str] = Query(None),
    state: Optional[str] = Query(None),
    error: Optional[str] = Query(None),
    state_cookie: Optional[str] = Cookie(None, alias=auth.STATE_COOKIE),
    config: AuthConfig = Depends(get_auth_config),
):
    if error:
        raise HTTPException(status_code=400, detail=f"Sign-in failed: {error}")
    if not code:
        raise HTTPException(status_code=400, detail="Missing required parameter: code")
    if not auth.verify_state_token(config, state, state_cookie):
        raise HTTPException(status_code=400, detail="Invalid sign-in state")

    try:
        profile = auth.exchange_code(config, code)
    except (requests.RequestException, SignInError) as exc:
        logger.exception("Google sign-in failed")
        raise HTTPException(status_code=502, detail="Failed to complete sign-in") from exc

    if not auth.is_sign_in_allowed(config, profile):
        logger.warning("Rejected sign-in for %s", profile.get("email"))
        raise HTTPException(status_code=403, detail="Sign-in not allowed for this account")

    response = RedirectResponse("/", status_code=302)
    response.delete_cookie(auth.STATE_COOKIE)
    response.set_cookie(
        auth.SESSION_COOKIE,
        auth.create_session_token(config, profile),
        max_age=config.session_max_age_seconds,
        httponly=True,
        samesite="lax",
        secure=config.redirect_url.startswith("https://"),
    )
    logger.info("Signed in %s", profile.get("email"))
    return response


@router.get("/session", response_model=SessionResponse, response_model_exclude_none=True)
def session(
    treeops_session: Optional[str] = Cookie(None),
    config: AuthConfig = Depends(get_auth_config),
):
    return auth.read_session(config, treeops_session)


@router.post("/signout")
def signout(config: AuthConfig = Depends(get_auth_config)):
    response = RedirectResponse("/", status_code=303)
    response.delete_cookie(auth.SESSION_COOKIE)
    return response
