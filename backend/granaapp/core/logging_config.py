# granaapp/core/logging_config.py

import sys
import logging
import uuid
import contextvars
from datetime import datetime, timezone

from loguru import logger

from granaapp.core.config import settings

# Trace ID da requisição corrente
trace_id_var: contextvars.ContextVar[str] = contextvars.ContextVar("trace_id", default="unset")

TRACE_HEADERS = ("X-Request-ID", "X-Trace-ID")

# Clientes HTTP e SDKs do Supabase são verbosos demais em INFO
QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "supabase", "gotrue", "realtime", "storage3")

# Polling de healthcheck não deve poluir o log em INFO
QUIET_PATHS = ("/healthcheck",)

CONSOLE_FORMAT = (
    "<green>{time:YYYY-MM-DD HH:mm:ss.SSS}Z</green> | "
    "<level>{level: <8}</level> | "
    "<cyan>{name}:{function}:{line}</cyan> | "
    "<magenta>TID:{extra[trace_id]: >12.12}</magenta> | "
    "<blue>UID:{extra[user_id]}</blue> | "
    "<level>{message}</level>"
)


class InterceptHandler(logging.Handler):
    """Redireciona o logging padrão (uvicorn, httpx, supabase) para o Loguru."""

    def emit(self, record: logging.LogRecord):
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        frame, depth = logging.currentframe(), 2
        while frame is not None and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1
        if frame is None:
            depth = 0

        logger.opt(depth=depth, exception=record.exc_info).bind(
            trace_id=trace_id_var.get()
        ).log(level, record.getMessage())


def setup_logging():
    """Loguru como único sink: console colorido ou JSON lines (LOG_SERIALIZE)."""
    logger.remove()

    log_level = settings.LOG_LEVEL.upper()

    logger.configure(extra={"trace_id": "unset", "user_id": "-"})
    if settings.LOG_SERIALIZE:
        logger.add(sys.stderr, level=log_level, serialize=True, enqueue=True)
    else:
        logger.add(
            sys.stderr,
            level=log_level,
            format=CONSOLE_FORMAT,
            enqueue=True,
            backtrace=True,
            diagnose=log_level == "DEBUG",
            colorize=True,
        )

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)
    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    logger.success(f"Loguru configured. Level: {log_level}, serialize={settings.LOG_SERIALIZE}")


def resolve_trace_id(headers) -> str:
    """Reaproveita o ID enviado pelo frontend/proxy ou gera um novo."""
    for header in TRACE_HEADERS:
        value = (headers.get(header) or "").strip()
        if value:
            return value[:64]
    return f"req_{uuid.uuid4().hex[:12]}"


async def add_trace_id_middleware(request, call_next):
    """Propaga o Trace ID via contextvars e devolve no header X-Trace-ID."""
    request_trace_id = resolve_trace_id(request.headers)
    token = trace_id_var.set(request_trace_id)
    quiet = request.url.path.endswith(QUIET_PATHS)
    level = "DEBUG" if quiet else "INFO"

    with logger.contextualize(trace_id=request_trace_id):
        logger.log(level, f"Request START: {request.method} {request.url.path}")
        start_time = datetime.now(timezone.utc)
        try:
            response = await call_next(request)
            response.headers["X-Trace-ID"] = request_trace_id
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.log(level, f"Request END: {request.method} {request.url.path} Status: {response.status_code} Duration: {duration_ms:.2f}ms")
            return response
        except Exception:
            duration_ms = (datetime.now(timezone.utc) - start_time).total_seconds() * 1000
            logger.exception(f"Unhandled exception during request {request.method} {request.url.path}. Duration: {duration_ms:.2f}ms")
            raise
        finally:
            trace_id_var.reset(token)
