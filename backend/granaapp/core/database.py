# granaapp/core/database.py

from contextlib import AbstractAsyncContextManager
from typing import Optional

from loguru import logger
from supabase import AsyncClient, acreate_client

from granaapp.core.config import settings


class SupabaseContext(AbstractAsyncContextManager):
    """Mantém o cliente Supabase (service role) vivo durante o lifespan da aplicação."""

    client: Optional[AsyncClient] = None

    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()

    async def connect(self):
        if self.client is not None:
            logger.info("Supabase client already initialized.")
            return

        if not settings.SUPABASE_URL or not settings.SUPABASE_SERVICE_KEY:
            logger.warning("Supabase not configured (SUPABASE_URL/SUPABASE_SERVICE_KEY). Store disabled.")
            return

        logger.info("Initializing Supabase client...")
        logger.debug(f"Supabase URL used: {settings.SUPABASE_URL}")
        try:
            self.client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_SERVICE_KEY)
            logger.success("Supabase client initialized.")
        except Exception as e:
            logger.critical(f"Failed to initialize Supabase client: {e}")
            self.client = None
            raise ConnectionError(f"Supabase initialization failed: {e}") from e

    async def disconnect(self):
        if self.client is None:
            return
        logger.info("Releasing Supabase client...")
        try:
            await self.client.postgrest.aclose()
            logger.info("Supabase client released.")
        except Exception as e:
            logger.error(f"Error closing Supabase client: {e}")
        finally:
            self.client = None


supabase_manager = SupabaseContext()
