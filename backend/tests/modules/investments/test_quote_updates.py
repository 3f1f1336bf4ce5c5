# tests/modules/investments/test_quote_updates.py
from datetime import datetime, timezone
from unittest.mock import patch

import pytest

from conftest import InMemoryAssetRepository, FakeQuoteProvider, make_quote_client
from granaapp.core.exceptions import QuoteProviderError, StoreUnavailableError
from granaapp.modules.investments.repository import AssetRepository
from granaapp.modules.investments.services import QuoteUpdateService, build_quote_rows, chunk, parse_symbols

pytestmark = pytest.mark.asyncio

FIXED_NOW = datetime(2024, 3, 15, 18, 30, tzinfo=timezone.utc)


def make_service(provider, repository, batch_size=50, rapid_api_key=None):
    return QuoteUpdateService(make_quote_client(provider, rapid_api_key), repository, batch_size=batch_size)


# --- Helpers puros ---

async def test_chunk_splits_in_fixed_size_groups():
    assert chunk(["A", "B", "C", "D", "E"], 2) == [["A", "B"], ["C", "D"], ["E"]]
    assert chunk([], 3) == []


async def test_parse_symbols_accepts_list_or_comma_string():
    assert parse_symbols(" petr4.sa, aapl ,,") == ["PETR4.SA", "AAPL"]
    assert parse_symbols(["itub4.sa", None, " "]) == ["ITUB4.SA"]
    assert parse_symbols(42) == []
    assert parse_symbols(None) == []


async def test_build_quote_rows_falls_back_to_bid_and_default_currency():
    asset, history = build_quote_rows({"symbol": "VALE3.SA", "bid": 61.2, "regularMarketChange": -0.4}, FIXED_NOW)
    assert asset.ultimo_preco == 61.2
    assert asset.variacao_percentual == -0.4
    assert asset.moeda == "BRL"
    assert asset.fonte == "Yahoo Finance"
    assert asset.atualizado_em == FIXED_NOW.isoformat()
    assert history.to_row()["data_registro"] == "2024-03-15"


async def test_build_quote_rows_uses_market_time_when_present():
    market_time = int(datetime(2024, 3, 15, 17, 0, tzinfo=timezone.utc).timestamp())
    asset, _ = build_quote_rows({"symbol": "AAPL", "regularMarketPrice": 170.5, "currency": "USD", "regularMarketTime": market_time}, FIXED_NOW)
    assert asset.atualizado_em.startswith("2024-03-15T17:00:00")
    assert asset.moeda == "USD"


@pytest.mark.parametrize("quote", [
    {"symbol": "OIBR3.SA", "regularMarketPrice": 0},
    {"symbol": "OIBR3.SA", "regularMarketPrice": -1.5},
    {"symbol": "OIBR3.SA"},
    {"regularMarketPrice": 10.0},
])
async def test_build_quote_rows_skips_quotes_without_positive_price(quote):
    assert build_quote_rows(quote, FIXED_NOW) is None


# --- Cliente de cotações ---

async def test_region_is_br_when_batch_has_b3_symbol():
    client = make_quote_client(FakeQuoteProvider())
    _, params, _ = client.build_request(["AAPL", "PETR4.SA"])
    assert params == {"symbols": "AAPL,PETR4.SA", "region": "BR"}
    _, params, _ = client.build_request(["AAPL", "MSFT"])
    assert params["region"] == "US"
    await client.aclose()


async def test_rapid_api_key_routes_through_rapid_api_host():
    provider = FakeQuoteProvider(quotes={"AAPL": {"regularMarketPrice": 170.0}})
    client = make_quote_client(provider, rapid_api_key="rapid-key")
    batch = await client.fetch_quotes(["AAPL"])
    await client.aclose()

    request = provider.requests[0]
    assert request.url.host == "yh-finance.p.rapidapi.com"
    assert request.url.path == "/market/v2/get-quotes"
    assert request.headers["X-RapidAPI-Key"] == "rapid-key"
    assert request.headers["X-RapidAPI-Host"] == "yh-finance.p.rapidapi.com"
    assert batch.quotes[0]["symbol"] == "AAPL"


async def test_without_rapid_api_key_calls_yahoo_directly():
    provider = FakeQuoteProvider(quotes={"AAPL": {"regularMarketPrice": 170.0}})
    client = make_quote_client(provider)
    await client.fetch_quotes(["AAPL"])
    await client.aclose()

    request = provider.requests[0]
    assert request.url.host == "query1.finance.yahoo.com"
    assert request.url.path == "/v7/finance/quote"
    assert "X-RapidAPI-Key" not in request.headers
    assert request.headers["User-Agent"].startswith("GranaApp/")


async def test_empty_batch_makes_no_request():
    provider = FakeQuoteProvider()
    client = make_quote_client(provider)
    batch = await client.fetch_quotes([])
    await client.aclose()
    assert batch.quotes == []
    assert provider.requests == []


# --- Serviço de atualização ---

async def test_update_quotes_batches_and_upserts_both_tables():
    provider = FakeQuoteProvider(quotes={
        "PETR4.SA": {"regularMarketPrice": 38.9, "regularMarketChangePercent": 1.2, "currency": "BRL"},
        "VALE3.SA": {"regularMarketPrice": 61.0, "regularMarketChangePercent": -0.5, "currency": "BRL"},
        "AAPL": {"regularMarketPrice": 170.0, "regularMarketChangePercent": 0.3, "currency": "USD"},
    })
    repository = InMemoryAssetRepository()
    service = make_service(provider, repository, batch_size=2)

    with patch("granaapp.modules.investments.services.utc_now", return_value=FIXED_NOW):
        result = await service.update_quotes(["PETR4.SA", "VALE3.SA", "AAPL"])

    assert len(provider.requests) == 2
    assert [r.url.params["region"] for r in provider.requests] == ["BR", "US"]
    assert result.batches == 2
    assert result.updated == 3
    assert result.history == 3
    assert result.symbols == ["PETR4.SA", "VALE3.SA", "AAPL"]
    assert result.unauthorized_symbols == []
    assert repository.assets["AAPL"]["ultimo_preco"] == 170.0
    assert ("PETR4.SA", "2024-03-15") in repository.history


async def test_same_day_refresh_overwrites_history_row():
    provider = FakeQuoteProvider(quotes={"PETR4.SA": {"regularMarketPrice": 38.9}})
    repository = InMemoryAssetRepository()
    service = make_service(provider, repository)

    with patch("granaapp.modules.investments.services.utc_now", return_value=FIXED_NOW):
        await service.update_quotes(["PETR4.SA"])
        provider.quotes["PETR4.SA"] = {"regularMarketPrice": 39.4}
        await service.update_quotes(["PETR4.SA"])

    assert len(repository.history) == 1
    assert repository.history[("PETR4.SA", "2024-03-15")]["preco"] == 39.4
    assert repository.assets["PETR4.SA"]["ultimo_preco"] == 39.4


async def test_unauthorized_batch_is_reported_and_others_still_update():
    provider = FakeQuoteProvider(
        quotes={"AAPL": {"regularMarketPrice": 170.0}, "MSFT": {"regularMarketPrice": 410.0}},
        refused=["PETR4.SA"],
    )
    repository = InMemoryAssetRepository()
    service = make_service(provider, repository, batch_size=2)

    result = await service.update_quotes(["PETR4.SA", "VALE3.SA", "AAPL", "MSFT"])

    assert result.unauthorized_symbols == ["PETR4.SA", "VALE3.SA"]
    assert result.symbols == ["AAPL", "MSFT"]
    assert result.updated == 2
    assert result.model_dump(by_alias=True)["unauthorizedSymbols"] == ["PETR4.SA", "VALE3.SA"]


async def test_non_positive_prices_are_not_written():
    provider = FakeQuoteProvider(quotes={"OIBR3.SA": {"regularMarketPrice": 0}, "ITUB4.SA": {"regularMarketPrice": 33.1}})
    repository = InMemoryAssetRepository()
    result = await make_service(provider, repository).update_quotes(["OIBR3.SA", "ITUB4.SA"])

    assert result.symbols == ["ITUB4.SA"]
    assert "OIBR3.SA" not in repository.assets
    assert result.history == 1


async def test_registered_symbols_are_used_when_none_given():
    provider = FakeQuoteProvider(quotes={"BBAS3.SA": {"regularMarketPrice": 27.8}})
    repository = InMemoryAssetRepository(symbols=["BBAS3.SA"])
    result = await make_service(provider, repository).update_quotes()

    assert provider.requests[0].url.params["symbols"] == "BBAS3.SA"
    assert result.updated == 1


async def test_no_registered_symbols_returns_empty_result_without_calls():
    provider = FakeQuoteProvider()
    result = await make_service(provider, InMemoryAssetRepository()).update_quotes()

    assert provider.requests == []
    assert result.batches == 0
    assert result.updated == 0


async def test_provider_failure_raises_quote_provider_error():
    provider = FakeQuoteProvider(status_code=500)
    with pytest.raises(QuoteProviderError) as exc_info:
        await make_service(provider, InMemoryAssetRepository()).update_quotes(["AAPL"])
    assert exc_info.value.status_code == 500
    assert "upstream unavailable" in exc_info.value.message


async def test_unconfigured_store_is_rejected_before_any_call():
    provider = FakeQuoteProvider()
    with pytest.raises(StoreUnavailableError):
        await make_service(provider, AssetRepository(client=None)).update_quotes(["AAPL"])
    assert provider.requests == []
