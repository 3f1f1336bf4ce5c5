"""Atualização de cotações: busca em lotes no provedor e grava preço atual + histórico do dia."""
import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence, Tuple

from fastapi import Depends
from loguru import logger

from granaapp.core.config import settings
from granaapp.core.exceptions import StoreUnavailableError
from granaapp.modules.finance.normalizers import utc_now
from granaapp.modules.investments.models import AssetQuoteRow, PriceHistoryRow, QuoteUpdateResult, DEFAULT_CURRENCY
from granaapp.modules.investments.quotes import QuoteClient, get_quote_client
from granaapp.modules.investments.repository import AssetRepository, get_asset_repository


def chunk(items: Sequence[str], size: int) -> List[List[str]]:
    return [list(items[i:i + size]) for i in range(0, len(items), size)]


def parse_symbols(raw: Any) -> List[str]:
    """Aceita lista ou string separada por vírgulas; normaliza para maiúsculas."""
    if isinstance(raw, str):
        parts = raw.split(",")
    elif isinstance(raw, (list, tuple)):
        parts = [str(item) for item in raw if item is not None]
    else:
        return []
    return [part.strip().upper() for part in parts if part.strip()]


def _first_number(quote: Dict[str, Any], *keys: str) -> Optional[float]:
    raw = next((quote[key] for key in keys if quote.get(key) is not None), 0)
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def build_quote_rows(quote: Dict[str, Any], now: datetime) -> Optional[Tuple[AssetQuoteRow, PriceHistoryRow]]:
    """Linhas de `ativos` e `historico_precos` para uma cotação; None se não houver preço positivo."""
    symbol = quote.get("symbol")
    if not symbol:
        return None
    price = _first_number(quote, "regularMarketPrice", "bid", "ask")
    if price is None or price <= 0:
        return None

    change = _first_number(quote, "regularMarketChangePercent", "regularMarketChange")
    currency = quote.get("currency") or DEFAULT_CURRENCY
    market_time = quote.get("regularMarketTime")
    updated_at = datetime.fromtimestamp(market_time, tz=timezone.utc) if isinstance(market_time, (int, float)) and market_time else now

    asset = AssetQuoteRow(
        symbol=symbol,
        ultimo_preco=price,
        variacao_percentual=change,
        moeda=currency,
        atualizado_em=updated_at.isoformat(),
    )
    history = PriceHistoryRow(
        ativo_symbol=symbol,
        preco=price,
        variacao_percentual=change,
        moeda=currency,
        data_registro=now.date(),
    )
    return asset, history


class QuoteUpdateService:

    def __init__(self, quote_client: QuoteClient, repository: AssetRepository, batch_size: int = settings.YAHOO_BATCH_SIZE):
        self.quote_client = quote_client
        self.repository = repository
        self.batch_size = batch_size

    async def update_quotes(self, symbols: Sequence[str] = ()) -> QuoteUpdateResult:
        """Sem símbolos explícitos, atualiza todos os ativos cadastrados."""
        if not self.repository.is_configured:
            raise StoreUnavailableError("Supabase não configurado (SUPABASE_URL/SUPABASE_SERVICE_KEY).")

        targets = [symbol for symbol in symbols if symbol]
        if not targets:
            targets = await self.repository.list_symbols()
        if not targets:
            logger.info("No symbols to update.")
            return QuoteUpdateResult()

        batches = chunk(targets, self.batch_size)
        now = utc_now()
        result = QuoteUpdateResult(batches=len(batches))
        unauthorized: List[str] = []
        log = logger.bind(service="QuoteUpdateService")
        log.info(f"Updating {len(targets)} symbols in {len(batches)} batch(es).")

        for group in batches:
            batch = await self.quote_client.fetch_quotes(group)
            if batch.unauthorized:
                unauthorized.extend(symbol for symbol in group if symbol not in unauthorized)
                continue

            asset_rows, history_rows = [], []
            for quote in batch.quotes:
                rows = build_quote_rows(quote, now)
                if rows is None:
                    continue
                asset, history = rows
                asset_rows.append(asset.to_row())
                history_rows.append(history.to_row())
                result.symbols.append(asset.symbol)

            result.updated += await self.repository.upsert_assets(asset_rows)
            result.history += await self.repository.upsert_price_history(history_rows)

        result.unauthorized_symbols = unauthorized
        log.info(f"Quotes updated: {result.updated}, history rows: {result.history}, unauthorized: {len(unauthorized)}.")
        return result


async def get_quote_update_service(
    quote_client: QuoteClient = Depends(get_quote_client),
    repository: AssetRepository = Depends(get_asset_repository),
) -> QuoteUpdateService:
    return QuoteUpdateService(quote_client=quote_client, repository=repository)
