# granaapp/modules/investments/quotes.py

import httpx
from functools import lru_cache
from typing import Sequence, Dict, Optional, Tuple

from loguru import logger

from granaapp.core.config import settings
from granaapp.core.exceptions import QuoteProviderError
from granaapp.modules.investments.models import QuoteBatch, BRAZILIAN_SUFFIX, USER_AGENT


class QuoteClient:
    """Busca cotações no Yahoo Finance, ou no espelho da RapidAPI quando há chave configurada."""

    def __init__(
        self,
        rapid_api_key: Optional[str] = settings.RAPID_API_KEY,
        rapid_api_host: str = settings.RAPID_API_HOST,
        rapid_api_path: str = settings.RAPID_API_PATH,
        yahoo_url: str = settings.YAHOO_API_URL,
        timeout: float = settings.QUOTES_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.rapid_api_key = rapid_api_key or None
        self.rapid_api_host = rapid_api_host
        self.rapid_api_path = rapid_api_path
        self.yahoo_url = yahoo_url
        self.aclient = httpx.AsyncClient(
            timeout=timeout,
            headers={"Content-Type": "application/json", "User-Agent": USER_AGENT},
            transport=transport,
        )

    @property
    def using_rapid_api(self) -> bool:
        return self.rapid_api_key is not None

    def build_request(self, symbols: Sequence[str]) -> Tuple[str, Dict[str, str], Dict[str, str]]:
        # Região BR quando qualquer ativo do lote é da B3 (.SA)
        region = "BR" if any(symbol.endswith(BRAZILIAN_SUFFIX) for symbol in symbols) else "US"
        params = {"symbols": ",".join(symbols), "region": region}
        if self.using_rapid_api:
            headers = {"X-RapidAPI-Key": self.rapid_api_key, "X-RapidAPI-Host": self.rapid_api_host}
            return f"https://{self.rapid_api_host}{self.rapid_api_path}", params, headers
        return self.yahoo_url, params, {}

    async def fetch_quotes(self, symbols: Sequence[str]) -> QuoteBatch:
        """Um lote de símbolos. 401/403 marcam o lote como não autorizado em vez de falhar."""
        if not symbols:
            return QuoteBatch()

        url, params, headers = self.build_request(symbols)
        log = logger.bind(service="QuoteClient", provider="RapidAPI" if self.using_rapid_api else "Yahoo")
        log.info(f"Fetching {len(symbols)} quotes (region={params['region']})...")
        try:
            response = await self.aclient.get(url, params=params, headers=headers)
        except httpx.RequestError as req_err:
            log.error(f"Network/Request error fetching quotes: {req_err}")
            raise QuoteProviderError(f"Falha ao consultar Yahoo Finance: {req_err}") from req_err

        if response.status_code in (401, 403):
            log.warning(f"Quote provider refused batch ({response.status_code}): {', '.join(symbols)}")
            return QuoteBatch(unauthorized=True)
        if response.is_error:
            log.error(f"HTTP Error {response.status_code} from quote provider: {response.text[:500]}")
            raise QuoteProviderError(
                f"Falha ao consultar Yahoo Finance ({response.status_code}): {response.text}",
                status_code=response.status_code,
            )

        try:
            payload = response.json()
        except ValueError as e:
            raise QuoteProviderError(f"Resposta inválida do provedor de cotações: {e}") from e
        quote_response = payload.get("quoteResponse") if isinstance(payload, dict) else None
        result = (quote_response or {}).get("result") or []
        log.debug(f"Quote provider returned {len(result)} quotes.")
        return QuoteBatch(quotes=result)

    async def aclose(self) -> None:
        await self.aclient.aclose()


@lru_cache()
def get_quote_client_instance() -> QuoteClient:
    return QuoteClient()


async def get_quote_client() -> QuoteClient:
    """FastAPI dependency: cliente de cotações compartilhado pelo processo."""
    return get_quote_client_instance()
