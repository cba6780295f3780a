import asyncio

import pytest
from aiohttp import test_utils, web

from bloggy.errors import ProviderError
from bloggy.oauth import GitHubOAuthClient

CALLS = web.AppKey("calls", dict)

PROFILE = {"login": "octocat", "name": "Mona Lisa Octocat", "avatar_url": "https://avatars.test/octocat.png"}

#==============================================================================
# CANNED GITHUB
#==============================================================================

async def access_token(request):
    form = await request.post()
    request.app[CALLS]["token_requests"].append(dict(form))
    if form.get("code") == "good-code":
        return web.json_response({"access_token": "gho_live", "token_type": "bearer"})
    # GitHub reports a bad code with a 200 and an error field
    return web.json_response({"error": "bad_verification_code"})


async def user(request):
    request.app[CALLS]["api_headers"].append(dict(request.headers))
    return web.json_response(PROFILE)


async def user_emails(request):
    status = request.app[CALLS]["emails_status"]
    if status >= 400:
        return web.json_response({"message": "Bad credentials"}, status=status)
    return web.json_response(request.app[CALLS]["emails"])


async def slow_user(request):
    await asyncio.sleep(0.5)
    return web.json_response(PROFILE)


def canned_github():
    app = web.Application()
    app[CALLS] = {"token_requests": [], "api_headers": [], "emails": [], "emails_status": 200}
    app.router.add_post("/login/oauth/access_token", access_token)
    app.router.add_get("/user", user)
    app.router.add_get("/user/emails", user_emails)
    app.router.add_get("/slow/user", slow_user)
    return app


@pytest.fixture
async def github_server():
    server = test_utils.TestServer(canned_github())
    await server.start_server()
    yield server
    await server.close()


def client_for(server, settings, timeout=30):
    client = GitHubOAuthClient(settings, timeout=timeout)
    client.token_endpoint = str(server.make_url("/login/oauth/access_token"))
    client.api_base = str(server.make_url("/")).rstrip("/")
    return client


class TestCodeExchange:
    """Test trading the authorization code for an access token"""

    async def test_exchange_code(self, github_server, settings):
        client = client_for(github_server, settings)
        assert await client.exchange_code("good-code") == "gho_live"

        sent = github_server.app[CALLS]["token_requests"][0]
        assert sent["code"] == "good-code"
        assert sent["redirect_uri"] == settings.oauth_github_callback

    async def test_missing_access_token(self, github_server, settings):
        client = client_for(github_server, settings)
        with pytest.raises(ProviderError) as excinfo:
            await client.exchange_code("stale-code")
        assert "bad_verification_code" in excinfo.value.detail


class TestProfile:
    """Test reading the GitHub account"""

    async def test_fetch_profile_sends_token(self, github_server, settings):
        client = client_for(github_server, settings)
        assert await client.fetch_profile("gho_live") == PROFILE
        headers = github_server.app[CALLS]["api_headers"][0]
        assert headers["Authorization"] == "Bearer gho_live"

    @pytest.mark.parametrize("emails, expected", [
        ([
            {"email": "old@github.test", "primary": False, "verified": True},
            {"email": "main@github.test", "primary": True, "verified": True},
        ], "main@github.test"),
        ([
            {"email": "unverified@github.test", "primary": True, "verified": False},
            {"email": "verified@github.test", "primary": False, "verified": True},
        ], "verified@github.test"),
        ([
            {"email": "first@github.test", "primary": False, "verified": False},
            {"email": "second@github.test", "primary": False, "verified": False},
        ], "first@github.test"),
    ])
    async def test_email_priority(self, github_server, settings, emails, expected):
        github_server.app[CALLS]["emails"] = emails
        client = client_for(github_server, settings)
        assert await client.fetch_email("gho_live") == expected

    async def test_no_email(self, github_server, settings):
        client = client_for(github_server, settings)
        with pytest.raises(ProviderError):
            await client.fetch_email("gho_live")


class TestProviderFailures:
    """Test GitHub failures surface as ProviderError"""

    async def test_error_status(self, github_server, settings):
        github_server.app[CALLS]["emails_status"] = 401
        client = client_for(github_server, settings)
        with pytest.raises(ProviderError) as excinfo:
            await client.fetch_email("revoked")
        assert "401" in excinfo.value.detail

    async def test_timeout(self, github_server, settings):
        client = client_for(github_server, settings, timeout=0.1)
        client.api_base = str(github_server.make_url("/slow")).rstrip("/")
        with pytest.raises(ProviderError):
            await client.fetch_profile("gho_live")

    async def test_connection_refused(self, settings):
        server = test_utils.TestServer(canned_github())
        await server.start_server()
        client = client_for(server, settings)
        await server.close()

        with pytest.raises(ProviderError):
            await client.exchange_code("good-code")
