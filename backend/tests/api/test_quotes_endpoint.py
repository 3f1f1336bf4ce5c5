# tests/api/test_quotes_endpoint.py
import pytest
from httpx import AsyncClient
from fastapi import status

from granaapp.core.exceptions import FinanceStoreError

pytestmark = pytest.mark.asyncio

URL = "/api/investments/update-quotes"


async def test_get_updates_symbols_from_query_string(test_client: AsyncClient, quote_provider, memory_assets):
    quote_provider.quotes = {
        "PETR4.SA": {"regularMarketPrice": 38.9, "regularMarketChangePercent": 1.1},
        "AAPL": {"regularMarketPrice": 170.0, "currency": "USD"},
    }

    response = await test_client.get(URL, params={"symbols": "petr4.sa, aapl"})

    assert response.status_code == status.HTTP_200_OK
    body = response.json()
    assert body["ok"] is True
    assert body["updated"] == 2
    assert body["history"] == 2
    assert body["symbols"] == ["PETR4.SA", "AAPL"]
    assert body["unauthorizedSymbols"] == []
    assert "executedAt" in body
    assert memory_assets.assets["AAPL"]["moeda"] == "USD"


async def test_post_accepts_symbol_list(test_client: AsyncClient, quote_provider):
    quote_provider.quotes = {"ITUB4.SA": {"regularMarketPrice": 33.0}}

    response = await test_client.post(URL, json={"symbols": ["itub4.sa"]})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["symbols"] == ["ITUB4.SA"]
    assert quote_provider.requests[0].url.params["region"] == "BR"


async def test_post_accepts_comma_separated_string(test_client: AsyncClient, quote_provider):
    quote_provider.quotes = {"AAPL": {"regularMarketPrice": 170.0}, "MSFT": {"regularMarketPrice": 410.0}}

    response = await test_client.post(URL, json={"symbols": "AAPL,MSFT"})

    assert response.json()["updated"] == 2


async def test_post_with_invalid_json_refreshes_registered_assets(test_client: AsyncClient, quote_provider, memory_assets):
    memory_assets.assets["BBAS3.SA"] = {"symbol": "BBAS3.SA"}
    quote_provider.quotes = {"BBAS3.SA": {"regularMarketPrice": 27.8}}

    response = await test_client.post(URL, content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["symbols"] == ["BBAS3.SA"]


async def test_refused_symbols_are_reported(test_client: AsyncClient, quote_provider):
    quote_provider.refused = {"PETR4.SA"}

    response = await test_client.get(URL, params={"symbols": "PETR4.SA"})

    assert response.status_code == status.HTTP_200_OK
    assert response.json()["unauthorizedSymbols"] == ["PETR4.SA"]
    assert response.json()["updated"] == 0


async def test_provider_failure_returns_500(test_client: AsyncClient, quote_provider):
    quote_provider.status_code = 502

    response = await test_client.get(URL, params={"symbols": "AAPL"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    body = response.json()
    assert body["ok"] is False
    assert "502" in body["error"]


async def test_store_failure_returns_500(test_client: AsyncClient, quote_provider, memory_assets):
    quote_provider.quotes = {"AAPL": {"regularMarketPrice": 170.0}}
    memory_assets.fail_with = FinanceStoreError("Erro ao atualizar preços: relation does not exist")

    response = await test_client.get(URL, params={"symbols": "AAPL"})

    assert response.status_code == status.HTTP_500_INTERNAL_SERVER_ERROR
    assert response.json() == {"ok": False, "error": "Erro ao atualizar preços: relation does not exist"}


@pytest.mark.parametrize("method", ["PUT", "PATCH", "DELETE", "OPTIONS"])
async def test_update_quotes_rejects_other_methods(test_client: AsyncClient, method):
    response = await test_client.request(method, URL)
    assert response.status_code == status.HTTP_405_METHOD_NOT_ALLOWED
    assert response.json() == {"error": "Método não suportado."}
    assert response.headers["Allow"] == "GET, POST"
