import secrets
import urllib.parse
from typing import Optional

import structlog
from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from fastapi.responses import RedirectResponse

from bloggy.config import Settings
from bloggy.dependencies import get_app_settings, get_github_client, get_identity_bridge
from bloggy.errors import BloggyError
from bloggy.oauth import GitHubIdentityBridge, GitHubOAuthClient
from bloggy.security import issue_token

logger = structlog.get_logger(__name__)

router = APIRouter(tags=["GitHub OAuth"])

STATE_COOKIE = "github_oauth_state"


def _redirect(url: str) -> RedirectResponse:
    return RedirectResponse(url, status_code=status.HTTP_302_FOUND)


@router.get("/auth/github")
async def github_login(client: GitHubOAuthClient = Depends(get_github_client)):
    """Send the browser to GitHub's consent page"""
    state = secrets.token_urlsafe(32)
    response = _redirect(client.authorization_url(state))
    response.set_cookie(STATE_COOKIE, state, max_age=600, httponly=True, samesite="lax")
    return response


@router.get("/auth/github/callback")
async def github_callback(
    request: Request,
    background_tasks: BackgroundTasks,
    code: Optional[str] = None,
    state: Optional[str] = None,
    error: Optional[str] = None,
    bridge: GitHubIdentityBridge = Depends(get_identity_bridge),
    settings: Settings = Depends(get_app_settings),
):
    """Finish the GitHub login and hand a session token to the frontend"""
    expected_state = request.cookies.get(STATE_COOKIE)
    if error or not code or not state or state != expected_state:
        logger.warning("github_callback_rejected", error=error, state_matches=state == expected_state)
        return _redirect("/")

    try:
        identity = await bridge.complete_login(code, background_tasks)
    except BloggyError as e:
        logger.warning("github_login_failed", error=str(e))
        return _redirect("/")

    token = issue_token(identity.claims(), settings)
    query = urllib.parse.urlencode({"token": token})
    response = _redirect(f"{settings.frontend_url.rstrip('/')}/success?{query}")
    response.delete_cookie(STATE_COOKIE)
    return response


@router.get("/success")
async def oauth_success():
    return _redirect("/home")
