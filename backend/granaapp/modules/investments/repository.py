from typing import Optional, List, Dict, Any

import httpx
from loguru import logger
from postgrest.exceptions import APIError
from supabase import AsyncClient

from granaapp.core.database import supabase_manager
from granaapp.core.exceptions import FinanceStoreError, StoreUnavailableError
from granaapp.modules.investments.models import (
    ASSETS_TABLE, PRICE_HISTORY_TABLE, ASSETS_CONFLICT_KEY, PRICE_HISTORY_CONFLICT_KEY,
)


class AssetRepository:
    """Cadastro de ativos (`ativos`) e histórico diário de preços (`historico_precos`)."""

    def __init__(self, client: Optional[AsyncClient]):
        self._client = client

    @property
    def is_configured(self) -> bool:
        return self._client is not None

    @property
    def client(self) -> AsyncClient:
        if self._client is None:
            raise StoreUnavailableError("Supabase não configurado (SUPABASE_URL/SUPABASE_SERVICE_KEY).")
        return self._client

    async def _execute(self, query, error_prefix: str):
        try:
            return await query.execute()
        except APIError as e:
            logger.warning(f"{error_prefix}: {e.message}")
            raise FinanceStoreError(f"{error_prefix}: {e.message or e}", code=e.code) from e
        except httpx.HTTPError as e:
            logger.error(f"{error_prefix}: {e}")
            raise FinanceStoreError(f"{error_prefix}: {e}") from e

    async def list_symbols(self) -> List[str]:
        query = self.client.table(ASSETS_TABLE).select("symbol").not_.is_("symbol", "null")
        response = await self._execute(query, "Não foi possível recuperar símbolos cadastrados")
        return [row["symbol"] for row in (response.data or []) if row.get("symbol")]

    async def upsert_assets(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        query = self.client.table(ASSETS_TABLE).upsert(rows, on_conflict=ASSETS_CONFLICT_KEY)
        await self._execute(query, "Erro ao atualizar preços")
        logger.info(f"Upserted {len(rows)} rows into '{ASSETS_TABLE}'.")
        return len(rows)

    async def upsert_price_history(self, rows: List[Dict[str, Any]]) -> int:
        if not rows:
            return 0
        query = self.client.table(PRICE_HISTORY_TABLE).upsert(rows, on_conflict=PRICE_HISTORY_CONFLICT_KEY)
        await self._execute(query, "Erro ao registrar histórico")
        logger.info(f"Upserted {len(rows)} rows into '{PRICE_HISTORY_TABLE}'.")
        return len(rows)


async def get_asset_repository() -> AssetRepository:
    return AssetRepository(supabase_manager.client)
