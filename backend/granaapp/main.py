# granaapp/main.py

from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from loguru import logger

from granaapp.core.config import settings
from granaapp.core.database import supabase_manager
from granaapp.core.exceptions import StoreUnavailableError, LLMNotConfiguredError
from granaapp.core.logging_config import setup_logging, add_trace_id_middleware, trace_id_var
from granaapp.api.v1 import api_router
from granaapp.services.llm_client import get_llm_client_instance
from granaapp.modules.investments.quotes import get_quote_client_instance


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.PROJECT_NAME}...")
    async with supabase_manager:
        yield
        logger.info(f"Shutting down {settings.PROJECT_NAME}...")
        await get_llm_client_instance().aclose()
        get_llm_client_instance.cache_clear()
        await get_quote_client_instance().aclose()
        get_quote_client_instance.cache_clear()


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError):
    logger.error(f"Store unavailable on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "Banco de dados indisponível.", "details": str(exc)},
    )


async def llm_not_configured_handler(request: Request, exc: LLMNotConfiguredError):
    logger.error(f"LLM not configured on {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"error": "OPENAI_API_KEY não configurada.", "details": str(exc)},
    )


async def request_validation_handler(request: Request, exc: RequestValidationError):
    # 400 com {error, details} no lugar do 422 padrão do FastAPI
    problems = "; ".join(
        f"{'.'.join(str(part) for part in err.get('loc', ()) if part != 'body') or 'body'}: {err.get('msg')}"
        for err in exc.errors()
    )
    logger.bind(trace_id=trace_id_var.get()).warning(f"Invalid request on {request.url.path}: {problems}")
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"error": "Requisição inválida.", "details": problems},
    )


def create_app() -> FastAPI:
    setup_logging()
    app = FastAPI(
        title=settings.PROJECT_NAME,
        openapi_url=f"{settings.API_PREFIX}/openapi.json",
        lifespan=lifespan,
    )

    # CORS Middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.FRONTEND_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.middleware("http")(add_trace_id_middleware)

    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(LLMNotConfiguredError, llm_not_configured_handler)

    app.include_router(api_router, prefix=settings.API_PREFIX)
    return app


app = create_app()


def run():
    """Entry point do script `granaapp-api`."""
    import uvicorn
    uvicorn.run("granaapp.main:app", host=settings.HOST, port=settings.PORT)


if __name__ == "__main__":
    run()
