# tests/conftest.py
import os

# Settings são lidas no import; o ambiente de teste precisa existir antes
os.environ.update({
    "PROJECT_NAME": "GranaApp Test",
    "API_PREFIX": "/api",
    "LOG_LEVEL": "DEBUG",
    "OPENAI_API_KEY": "sk-test-key",
    "SUPABASE_URL": "",
    "SUPABASE_SERVICE_KEY": "",
    "ASSISTANT_MAX_TOOL_STEPS": "8",
})

import json
from typing import AsyncGenerator, List, Dict, Any, Optional

import pytest
import httpx
import pytest_asyncio
from httpx import AsyncClient, ASGITransport

from granaapp.models.assistant import LLMResponse, LLMResponseChoice, LLMResponseMessage, LLMFunctionCall, LLMError
from granaapp.modules.finance.repository import FinanceRepository
from granaapp.modules.investments.quotes import QuoteClient
from granaapp.modules.investments.repository import AssetRepository
from granaapp.services.llm_client import BaseLLMClient

TEST_USER_ID = "user-123"


def text_reply(content: str) -> LLMResponse:
    return LLMResponse(
        id="chatcmpl-test",
        choices=[LLMResponseChoice(message=LLMResponseMessage(content=content), finish_reason="stop")],
    )


def function_reply(name: str, arguments: Dict[str, Any] | str) -> LLMResponse:
    raw = arguments if isinstance(arguments, str) else json.dumps(arguments)
    return LLMResponse(
        id="chatcmpl-test",
        choices=[LLMResponseChoice(
            message=LLMResponseMessage(function_call=LLMFunctionCall(name=name, arguments=raw)),
            finish_reason="function_call",
        )],
    )


def error_reply(message: str) -> LLMResponse:
    return LLMResponse(id="error-http", object="error", error=LLMError(message=message))


class FakeLLMClient(BaseLLMClient):
    """Devolve respostas roteirizadas e guarda as mensagens recebidas."""
    provider_name = "Fake"

    def __init__(self, responses: Optional[List[LLMResponse]] = None, configured: bool = True, transcription: str = ""):
        self.responses = list(responses or [])
        self.configured = configured
        self.transcription = transcription
        self.calls: List[List[Dict[str, Any]]] = []
        self.transcribed: List[Dict[str, Any]] = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def get_completion(self, messages, functions=None, function_call="auto", model=None, temperature=None):
        self.calls.append([dict(m) for m in messages])
        if not self.responses:
            return text_reply("")
        return self.responses.pop(0)

    async def transcribe(self, audio, filename, mime_type=None):
        self.transcribed.append({"audio": audio, "filename": filename, "mime_type": mime_type})
        return self.transcription


class InMemoryFinanceRepository(FinanceRepository):
    """Repositório em memória com a mesma semântica de filtro/ordem do Supabase."""

    def __init__(self, fail_with: Optional[Exception] = None):
        super().__init__(client=None)
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail_with = fail_with
        self._next_id = 1

    @property
    def is_configured(self) -> bool:
        return True

    async def insert(self, table, row):
        if self.fail_with:
            raise self.fail_with
        stored = {"id": self._next_id, **row}
        self._next_id += 1
        self.tables.setdefault(table, []).append(stored)
        return stored

    async def select_range(self, table, user_id, date_column, start=None, end=None, filters=None, limit=None, columns="*"):
        if self.fail_with:
            raise self.fail_with
        rows = [r for r in self.tables.get(table, []) if r.get("user_id") == user_id]
        if start:
            rows = [r for r in rows if str(r.get(date_column))[:10] >= start.isoformat()]
        if end:
            rows = [r for r in rows if str(r.get(date_column))[:10] <= end.isoformat()]
        for column, value in (filters or {}).items():
            if value is not None:
                rows = [r for r in rows if r.get(column) == value]
        rows.sort(key=lambda r: str(r.get(date_column)), reverse=True)
        if limit:
            rows = rows[:limit]
        return [dict(r) for r in rows]


class InMemoryAssetRepository(AssetRepository):
    """`ativos` indexado por symbol e `historico_precos` por (ativo_symbol, data_registro), como as chaves de upsert."""

    def __init__(self, symbols: Optional[List[str]] = None, fail_with: Optional[Exception] = None):
        super().__init__(client=None)
        self.assets: Dict[str, Dict[str, Any]] = {symbol: {"symbol": symbol} for symbol in (symbols or [])}
        self.history: Dict[tuple, Dict[str, Any]] = {}
        self.fail_with = fail_with

    @property
    def is_configured(self) -> bool:
        return True

    async def list_symbols(self):
        if self.fail_with:
            raise self.fail_with
        return list(self.assets)

    async def upsert_assets(self, rows):
        if self.fail_with:
            raise self.fail_with
        for row in rows:
            self.assets[row["symbol"]] = {**self.assets.get(row["symbol"], {}), **row}
        return len(rows)

    async def upsert_price_history(self, rows):
        if self.fail_with:
            raise self.fail_with
        for row in rows:
            self.history[(row["ativo_symbol"], row["data_registro"])] = dict(row)
        return len(rows)


class FakeQuoteProvider:
    """Handler para httpx.MockTransport imitando o endpoint de cotações do Yahoo."""

    def __init__(self, quotes: Optional[Dict[str, Dict[str, Any]]] = None, refused: Optional[List[str]] = None, status_code: int = 200):
        self.quotes = dict(quotes or {})
        self.refused = set(refused or [])
        self.status_code = status_code
        self.requests: List[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        symbols = request.url.params.get("symbols", "").split(",")
        if self.refused.intersection(symbols):
            return httpx.Response(401, json={"message": "Unauthorized"})
        if self.status_code != 200:
            return httpx.Response(self.status_code, text="upstream unavailable")
        result = [{"symbol": symbol, **self.quotes[symbol]} for symbol in symbols if symbol in self.quotes]
        return httpx.Response(200, json={"quoteResponse": {"result": result, "error": None}})


def make_quote_client(provider: FakeQuoteProvider, rapid_api_key: Optional[str] = None) -> QuoteClient:
    return QuoteClient(rapid_api_key=rapid_api_key, transport=httpx.MockTransport(provider))


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def memory_repo() -> InMemoryFinanceRepository:
    return InMemoryFinanceRepository()


@pytest.fixture
def memory_assets() -> InMemoryAssetRepository:
    return InMemoryAssetRepository()


@pytest.fixture
def quote_provider() -> FakeQuoteProvider:
    return FakeQuoteProvider()


@pytest_asyncio.fixture(scope="function")
async def quote_client(quote_provider: FakeQuoteProvider) -> AsyncGenerator[QuoteClient, None]:
    client = make_quote_client(quote_provider)
    yield client
    await client.aclose()


@pytest_asyncio.fixture(scope="function")
async def test_client(
    fake_llm: FakeLLMClient,
    memory_repo: InMemoryFinanceRepository,
    memory_assets: InMemoryAssetRepository,
    quote_client: QuoteClient,
) -> AsyncGenerator[AsyncClient, None]:
    from granaapp.main import app
    from granaapp.services.llm_client import get_llm_client
    from granaapp.modules.finance.repository import get_finance_repository
    from granaapp.modules.investments.quotes import get_quote_client
    from granaapp.modules.investments.repository import get_asset_repository

    app.dependency_overrides[get_llm_client] = lambda: fake_llm
    app.dependency_overrides[get_finance_repository] = lambda: memory_repo
    app.dependency_overrides[get_quote_client] = lambda: quote_client
    app.dependency_overrides[get_asset_repository] = lambda: memory_assets
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as client:
        yield client
    app.dependency_overrides.clear()
