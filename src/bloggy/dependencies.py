from fastapi import Depends, Request

from bloggy.config import Settings
from bloggy.notifications import EmailNotifier
from bloggy.oauth import GitHubIdentityBridge, GitHubOAuthClient
from bloggy.store import BlogPostRepository, CommentRepository, UserRepository
from bloggy.uploads import MediaUploader


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_user_repository() -> UserRepository:
    return UserRepository()


def get_blog_post_repository() -> BlogPostRepository:
    return BlogPostRepository()


def get_comment_repository() -> CommentRepository:
    return CommentRepository()


def get_uploader(settings: Settings = Depends(get_app_settings)) -> MediaUploader:
    return MediaUploader(settings)


def get_notifier(settings: Settings = Depends(get_app_settings)) -> EmailNotifier:
    return EmailNotifier(settings)


def get_github_client(settings: Settings = Depends(get_app_settings)) -> GitHubOAuthClient:
    return GitHubOAuthClient(settings)


def get_identity_bridge(
    client: GitHubOAuthClient = Depends(get_github_client),
    users: UserRepository = Depends(get_user_repository),
    notifier: EmailNotifier = Depends(get_notifier),
) -> GitHubIdentityBridge:
    return GitHubIdentityBridge(client, users, notifier)
