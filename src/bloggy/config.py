from functools import lru_cache
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration for the Bloggy API"""

    # App settings
    app_name: str = "Bloggy"
    version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 3030
    allowed_origins: List[str] = ["*"]

    # Database
    mongodb_url: str = "mongodb://localhost:27017"
    database_name: str = "bloggy"

    # Security
    secret_key: str = "change-me-in-production"
    algorithm: str = "HS256"
    token_expire_hours: int = 24

    # GitHub OAuth
    oauth_github_client_id: Optional[str] = None
    oauth_github_client_secret: Optional[str] = None
    oauth_github_callback: str = "http://localhost:3030/auth/github/callback"

    # Cloudinary
    cloudinary_cloud_name: Optional[str] = None
    cloudinary_api_key: Optional[str] = None
    cloudinary_api_secret: Optional[str] = None

    # Email
    email_sender: Optional[str] = None
    password_sender: Optional[str] = None
    smtp_host: str = "smtp.gmail.com"
    smtp_port: int = 587

    # Frontend & uploads
    frontend_url: str = "http://localhost:3000"
    upload_dir: str = "uploads"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    return Settings()
