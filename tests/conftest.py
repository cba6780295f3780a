from typing import Any, Dict, List

import pytest
from beanie import init_beanie
from fastapi.testclient import TestClient
from mongomock_motor import AsyncMongoMockClient

from bloggy.config import Settings
from bloggy.dependencies import get_github_client, get_notifier, get_uploader
from bloggy.errors import ProviderError
from bloggy.main import create_app
from bloggy.models import DOCUMENT_MODELS
from bloggy.notifications import EmailNotifier
from bloggy.oauth import GitHubOAuthClient
from bloggy.uploads import MediaUploader

USER_DATA = {
    "firstName": "Ada",
    "lastName": "Lovelace",
    "email": "ada@example.com",
    "password": "password123",
    "dateOfBirth": "10/12/1815",
}

#==============================================================================
# FAKE EXTERNAL SERVICES
#==============================================================================

class FakeUploader(MediaUploader):
    """Local uploads hit the disk, remote ones never leave the process"""

    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.remote_uploads: List[tuple] = []

    async def _store_remote(self, file, folder):
        self.remote_uploads.append((folder, file.filename))
        return f"https://res.cloudinary.test/{folder}/{file.filename}"


class FakeNotifier(EmailNotifier):
    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.sent = []

    async def deliver(self, message):
        self.sent.append(message)


class FakeGitHubClient(GitHubOAuthClient):
    def __init__(self, settings: Settings):
        super().__init__(settings)
        self.profile: Dict[str, Any] = {
            "login": "octocat",
            "name": "Mona Lisa Octocat",
            "avatar_url": "https://avatars.test/octocat.png",
        }
        self.email = "mona@github.test"
        self.fail = False

    async def exchange_code(self, code):
        if self.fail or code != "good-code":
            raise ProviderError(detail="bad verification code")
        return "gho_test_token"

    async def fetch_profile(self, access_token):
        return self.profile

    async def fetch_email(self, access_token):
        return self.email

#==============================================================================
# FIXTURES
#==============================================================================

@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        secret_key="test-secret-key",
        database_name="bloggy_test",
        upload_dir=str(tmp_path / "uploads"),
        frontend_url="http://frontend.test",
        email_sender="bloggy@test.dev",
        password_sender="app-password",
        log_level="WARNING",
    )


@pytest.fixture
def uploader(settings):
    return FakeUploader(settings)


@pytest.fixture
def notifier(settings):
    return FakeNotifier(settings)


@pytest.fixture
def github_client(settings):
    return FakeGitHubClient(settings)


@pytest.fixture
def app(settings, uploader, notifier, github_client):
    app = create_app(settings, mongo_client=AsyncMongoMockClient())
    app.dependency_overrides[get_uploader] = lambda: uploader
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_github_client] = lambda: github_client
    return app


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
async def database():
    """Bare beanie setup for repository tests"""
    mongo_client = AsyncMongoMockClient()
    await init_beanie(database=mongo_client["bloggy_test"], document_models=DOCUMENT_MODELS)
    yield mongo_client


def create_user(client, **overrides):
    data = dict(USER_DATA, **overrides)
    files = {"avatar": ("ada.png", b"\x89PNG fake image", "image/png")}
    return client.post("/createUser", data=data, files=files)


def add_blog_post(client, headers, **overrides):
    data = {
        "title": "Cats in tech",
        "content": "A long story about cats and computers.",
        "category": "tech",
        "readTime[value]": "5",
        "readTime[unit]": "min",
        "author[name]": "Ada Lovelace",
        "author[email]": "ada@example.com",
    }
    data.update(overrides)
    files = {"cover": ("cover.jpg", b"fake jpeg", "image/jpeg")}
    return client.post("/addBlogPost", data=data, files=files, headers=headers)


@pytest.fixture
def test_user(client):
    """Create a test user"""
    response = create_user(client)
    assert response.status_code == 201
    return response.json()["payload"]


@pytest.fixture
def auth_token(client, test_user):
    """Get authentication token"""
    response = client.post("/login", json={"email": USER_DATA["email"], "password": USER_DATA["password"]})
    assert response.status_code == 200
    return response.json()["token"]


@pytest.fixture
def auth_headers(auth_token):
    return {"Authorization": auth_token}


@pytest.fixture
def blog_post(client, auth_headers):
    response = add_blog_post(client, auth_headers)
    assert response.status_code == 201
    return response.json()["payload"]
