import asyncio
import urllib.parse
from dataclasses import asdict, dataclass
from typing import Any, Dict, List

import aiohttp
import structlog
from fastapi import BackgroundTasks

from bloggy.config import Settings
from bloggy.errors import ProviderError
from bloggy.models import User
from bloggy.notifications import WELCOME, EmailNotifier
from bloggy.security import generate_temporary_password, hash_password
from bloggy.store import UserRepository

logger = structlog.get_logger(__name__)

PLACEHOLDER_DATE_OF_BIRTH = "01/01/2000"


class GitHubOAuthClient:
    """
    OAuth 2.0 client for GitHub (Authorization Code Flow)
    """

    authorize_endpoint = "https://github.com/login/oauth/authorize"
    token_endpoint = "https://github.com/login/oauth/access_token"
    api_base = "https://api.github.com"
    scopes = ["user:email"]

    def __init__(self, settings: Settings, timeout: int = 30):
        self.client_id = settings.oauth_github_client_id
        self.client_secret = settings.oauth_github_client_secret
        self.redirect_uri = settings.oauth_github_callback
        self.timeout = aiohttp.ClientTimeout(total=timeout)

    def authorization_url(self, state: str) -> str:
        """Provider consent page the browser is redirected to"""
        params = {
            "client_id": self.client_id or "",
            "redirect_uri": self.redirect_uri,
            "scope": " ".join(self.scopes),
            "state": state,
        }
        return f"{self.authorize_endpoint}?{urllib.parse.urlencode(params)}"

    async def _request(self, method: str, url: str, **kwargs) -> Any:
        try:
            async with aiohttp.ClientSession(timeout=self.timeout) as session:
                async with session.request(method, url, **kwargs) as response:
                    if response.status >= 400:
                        body = await response.text()
                        raise ProviderError(detail=f"GitHub {response.status}: {body[:200]}")
                    return await response.json(content_type=None)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderError(detail=f"GitHub request failed: {e}") from e

    def _api_headers(self, access_token: str) -> Dict[str, str]:
        return {
            "Authorization": f"Bearer {access_token}",
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
        }

    async def exchange_code(self, code: str) -> str:
        """Exchange the authorization code for an access token"""
        data = await self._request(
            "POST",
            self.token_endpoint,
            data={
                "client_id": self.client_id or "",
                "client_secret": self.client_secret or "",
                "code": code,
                "redirect_uri": self.redirect_uri,
            },
            headers={"Accept": "application/json"},
        )
        token = (data or {}).get("access_token")
        if not token:
            raise ProviderError(detail=f"token exchange failed: {(data or {}).get('error', 'no token')}")
        return token

    async def fetch_profile(self, access_token: str) -> Dict[str, Any]:
        return await self._request("GET", f"{self.api_base}/user", headers=self._api_headers(access_token))

    async def fetch_email(self, access_token: str) -> str:
        """Primary verified address, else the first verified, else the first one"""
        emails: List[Dict[str, Any]] = await self._request(
            "GET", f"{self.api_base}/user/emails", headers=self._api_headers(access_token)
        )
        if not emails:
            raise ProviderError(detail="GitHub account exposes no email address")

        for predicate in (
            lambda e: e.get("primary") and e.get("verified"),
            lambda e: e.get("verified"),
            lambda e: True,
        ):
            for entry in emails:
                if predicate(entry) and entry.get("email"):
                    return entry["email"]
        raise ProviderError(detail="GitHub account exposes no email address")


@dataclass
class GitHubIdentity:
    """Local identity resolved from one GitHub login"""
    firstName: str
    lastName: str
    email: str
    avatarUrl: str

    def claims(self) -> Dict[str, str]:
        return asdict(self)


def split_display_name(profile: Dict[str, Any]):
    parts = (profile.get("name") or "").split()
    if not parts:
        return profile.get("login") or "GitHub", ""
    return parts[0], parts[1] if len(parts) > 1 else ""


class GitHubIdentityBridge:
    """Maps a GitHub login onto a local user, provisioning one if needed"""

    def __init__(self, client: GitHubOAuthClient, users: UserRepository, notifier: EmailNotifier):
        self.client = client
        self.users = users
        self.notifier = notifier

    async def complete_login(self, code: str, background_tasks: BackgroundTasks) -> GitHubIdentity:
        access_token = await self.client.exchange_code(code)
        profile = await self.client.fetch_profile(access_token)
        email = await self.client.fetch_email(access_token)

        user = await self.users.find_user_by_email(email)
        if user is None:
            user = await self._provision(profile, email, background_tasks)

        logger.info("github_login_completed", user_id=str(user.id))
        return GitHubIdentity(
            firstName=user.firstName,
            lastName=user.lastName,
            email=user.email,
            avatarUrl=user.avatarUrl,
        )

    async def _provision(self, profile: Dict[str, Any], email: str,
                         background_tasks: BackgroundTasks) -> User:
        first_name, last_name = split_display_name(profile)
        temporary_password = generate_temporary_password()

        user = await self.users.insert_user(User(
            firstName=first_name,
            lastName=last_name,
            email=email,
            passwordHash=hash_password(temporary_password),
            avatarUrl=profile.get("avatar_url") or "",
            dateOfBirth=PLACEHOLDER_DATE_OF_BIRTH,
        ))
        logger.info("github_user_provisioned", user_id=str(user.id))

        background_tasks.add_task(
            self.notifier.send,
            email,
            WELCOME,
            {"name": first_name, "temporaryPassword": temporary_password},
        )
        return user
