import secrets
import time
from pathlib import Path

import aiofiles
import cloudinary
import cloudinary.uploader
import structlog
from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

from bloggy.config import Settings
from bloggy.errors import UploadError

logger = structlog.get_logger(__name__)

LOCAL = "local"
REMOTE = "remote"

BLOG_IMAGE_FOLDER = "blogImg"
USER_IMAGE_FOLDER = "userImg"
REMOTE_FORMATS = ["png", "jpg", "jpeg"]


def configure_cloudinary(settings: Settings) -> None:
    if not settings.cloudinary_cloud_name:
        logger.warning("cloudinary_not_configured")
        return
    cloudinary.config(
        cloud_name=settings.cloudinary_cloud_name,
        api_key=settings.cloudinary_api_key,
        api_secret=settings.cloudinary_api_secret,
        secure=True,
    )


class MediaUploader:
    """Stores uploaded images on local disk or on Cloudinary"""

    def __init__(self, settings: Settings):
        self.upload_dir = Path(settings.upload_dir)

    async def store(self, file: UploadFile, destination: str, field_name: str,
                    folder: str = BLOG_IMAGE_FOLDER, base_url: str = "") -> str:
        """Persist file and return the URL it is reachable at"""
        if destination == LOCAL:
            return await self._store_local(file, field_name, base_url)
        if destination == REMOTE:
            return await self._store_remote(file, folder)
        raise ValueError(f"unknown upload destination: {destination}")

    def _local_filename(self, file: UploadFile, field_name: str) -> str:
        extension = Path(file.filename or "").suffix
        return f"{field_name}{int(time.time() * 1000)}-{secrets.token_hex(4)}{extension}"

    async def _store_local(self, file: UploadFile, field_name: str, base_url: str) -> str:
        filename = self._local_filename(file, field_name)
        try:
            self.upload_dir.mkdir(parents=True, exist_ok=True)
            content = await file.read()
            async with aiofiles.open(self.upload_dir / filename, "wb") as f:
                await f.write(content)
        except OSError as e:
            logger.error("local_upload_failed", filename=filename, error=str(e))
            raise UploadError(detail=str(e)) from e

        logger.info("file_uploaded", destination=LOCAL, filename=filename, size=len(content))
        return f"{base_url.rstrip('/')}/uploads/{filename}"

    async def _store_remote(self, file: UploadFile, folder: str) -> str:
        extension = Path(file.filename or "").suffix.lower().lstrip(".")
        if extension not in REMOTE_FORMATS:
            raise UploadError(detail=f"format not allowed: {extension or 'none'}")

        try:
            await file.seek(0)
            result = await run_in_threadpool(
                cloudinary.uploader.upload,
                file.file,
                folder=folder,
                allowed_formats=REMOTE_FORMATS,
            )
        except Exception as e:
            logger.error("remote_upload_failed", folder=folder, error=str(e))
            raise UploadError(detail=str(e)) from e

        url = result.get("secure_url")
        if not url:
            raise UploadError(detail="provider returned no url")
        logger.info("file_uploaded", destination=REMOTE, folder=folder)
        return url
