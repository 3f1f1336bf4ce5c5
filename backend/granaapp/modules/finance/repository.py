from datetime import date
from typing import Optional, List, Dict, Any

import httpx
from loguru import logger
from postgrest.exceptions import APIError
from supabase import AsyncClient

from granaapp.core.database import supabase_manager
from granaapp.core.exceptions import FinanceStoreError, StoreUnavailableError


class FinanceRepository:
    """Acesso às tabelas financeiras (expenses, incomes, investments, overtime_hours)."""

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

    async def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        """Insere uma linha e devolve a representação gravada."""
        log = logger.bind(repository="FinanceRepository", table=table, user_id=row.get("user_id"))
        log.debug(f"Inserting row: {row}")
        try:
            response = await self.client.table(table).insert(row).execute()
        except APIError as e:
            log.warning(f"Store rejected insert: {e.message}")
            raise FinanceStoreError(e.message or str(e), code=e.code) from e
        except httpx.HTTPError as e:
            log.error(f"Store connectivity error on insert: {e}")
            raise FinanceStoreError(str(e)) from e

        data = response.data or []
        created = data[0] if data else row
        log.info(f"Row inserted into '{table}' (id={created.get('id', 'N/A')}).")
        return created

    async def select_range(
        self,
        table: str,
        user_id: str,
        date_column: str,
        start: Optional[date] = None,
        end: Optional[date] = None,
        filters: Optional[Dict[str, Any]] = None,
        limit: Optional[int] = None,
        columns: str = "*",
    ) -> List[Dict[str, Any]]:
        """Lista linhas do usuário no intervalo [start, end], mais recentes primeiro."""
        log = logger.bind(repository="FinanceRepository", table=table, user_id=user_id)
        query = self.client.table(table).select(columns).eq("user_id", user_id)
        if start:
            query = query.gte(date_column, start.isoformat())
        if end:
            query = query.lte(date_column, end.isoformat())
        for column, value in (filters or {}).items():
            if value is not None:
                query = query.eq(column, value)
        query = query.order(date_column, desc=True)
        if limit:
            query = query.limit(limit)

        try:
            response = await query.execute()
        except APIError as e:
            log.warning(f"Store rejected select: {e.message}")
            raise FinanceStoreError(e.message or str(e), code=e.code) from e
        except httpx.HTTPError as e:
            log.error(f"Store connectivity error on select: {e}")
            raise FinanceStoreError(str(e)) from e

        rows = response.data or []
        log.debug(f"Fetched {len(rows)} rows from '{table}' ({start} -> {end}, filters={filters}).")
        return rows


# Factory to get repository instance
async def get_finance_repository() -> FinanceRepository:
    return FinanceRepository(supabase_manager.client)
