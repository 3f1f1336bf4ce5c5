# granaapp/api/endpoints/quotes.py

import json

from fastapi import APIRouter, Depends, Request, status
from fastapi.responses import JSONResponse
from loguru import logger

from granaapp.api.endpoints.chat import error_response
from granaapp.core.exceptions import QuoteProviderError, FinanceStoreError, StoreUnavailableError
from granaapp.core.logging_config import trace_id_var
from granaapp.modules.finance.normalizers import utc_now
from granaapp.modules.investments.services import QuoteUpdateService, get_quote_update_service, parse_symbols

router = APIRouter()


async def read_target_symbols(request: Request):
    if request.method == "GET":
        return parse_symbols(request.query_params.get("symbols"))
    raw = await request.body()
    if not raw:
        return []
    try:
        body = json.loads(raw)
    except ValueError:
        # corpo inválido equivale a "todos os ativos"
        return []
    return parse_symbols(body.get("symbols")) if isinstance(body, dict) else []


@router.api_route("/investments/update-quotes", methods=["GET", "POST"], tags=["Investments"], summary="Refresh asset quotes and daily price history")
async def update_quotes(
    request: Request,
    service: QuoteUpdateService = Depends(get_quote_update_service),
):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint=f"/investments/update-quotes {request.method}")
    symbols = await read_target_symbols(request)
    log.info(f"Quote refresh requested for {len(symbols) or 'all'} symbol(s).")

    try:
        result = await service.update_quotes(symbols)
    except (QuoteProviderError, FinanceStoreError) as e:
        log.error(f"Quote refresh failed: {e.message}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"ok": False, "error": e.message})
    except StoreUnavailableError as e:
        log.error(f"Quote refresh without store: {e}")
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"ok": False, "error": str(e)})

    return {"ok": True, **result.model_dump(by_alias=True), "executedAt": utc_now().isoformat()}


@router.api_route("/investments/update-quotes", methods=["HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def update_quotes_method_not_allowed():
    response = error_response(status.HTTP_405_METHOD_NOT_ALLOWED, "Método não suportado.")
    response.headers["Allow"] = "GET, POST"
    return response
