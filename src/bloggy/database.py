from typing import Any, Optional

import structlog
from beanie import init_beanie
from motor.motor_asyncio import AsyncIOMotorClient

from bloggy.config import Settings
from bloggy.models import DOCUMENT_MODELS

logger = structlog.get_logger(__name__)


class Database:
    """Owns the Mongo client for the lifetime of the application"""

    def __init__(self, settings: Settings, client: Optional[Any] = None):
        self.settings = settings
        self.client = client
        self._owns_client = client is None

    async def connect(self) -> None:
        if self.client is None:
            self.client = AsyncIOMotorClient(self.settings.mongodb_url)
        await init_beanie(
            database=self.client[self.settings.database_name],
            document_models=DOCUMENT_MODELS,
        )
        logger.info("database_connected", database=self.settings.database_name)

    async def ping(self) -> bool:
        try:
            await self.client[self.settings.database_name].command("ping")
            return True
        except Exception as e:
            logger.warning("database_ping_failed", error=str(e))
            return False

    def close(self) -> None:
        if self.client is not None and self._owns_client:
            self.client.close()
            logger.info("database_closed")
