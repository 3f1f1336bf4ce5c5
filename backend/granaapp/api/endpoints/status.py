# granaapp/api/endpoints/status.py
from fastapi import APIRouter, Depends, status as http_status, Response
from loguru import logger
from datetime import datetime, timezone
import time as process_time
from typing import Dict, Optional, Literal
from pydantic import BaseModel, Field

from granaapp.core.logging_config import trace_id_var
from granaapp.modules.finance.repository import FinanceRepository, get_finance_repository
from granaapp.services.llm_client import BaseLLMClient, get_llm_client


class ComponentStatus(BaseModel):
    status: Literal["ok", "error", "unavailable"] = "ok"
    message: Optional[str] = None


class HealthCheckResponse(BaseModel):
    overall_status: Literal["ok", "error"] = "ok"
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    uptime_seconds: float = Field(..., description="Process uptime in seconds")
    components: Dict[str, ComponentStatus]


PROCESS_START_TIME = process_time.monotonic()

router = APIRouter()


@router.get(
    "/healthcheck",
    response_model=HealthCheckResponse,
    tags=["Status & Health"],
    summary="Application Health and Component Status Check",
)
async def get_application_health(
    repository: FinanceRepository = Depends(get_finance_repository),
    llm_client: BaseLLMClient = Depends(get_llm_client),
):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/healthcheck GET")
    log.info("Performing application health check...")

    component_statuses: Dict[str, ComponentStatus] = {}
    critical_ok = True

    if repository.is_configured:
        component_statuses["database_supabase"] = ComponentStatus(status="ok")
    else:
        log.error("Supabase client not available.")
        component_statuses["database_supabase"] = ComponentStatus(status="error", message="Supabase client not configured")
        critical_ok = False

    if llm_client.is_configured:
        component_statuses["llm_openai"] = ComponentStatus(status="ok")
    else:
        log.error("OpenAI client not available.")
        component_statuses["llm_openai"] = ComponentStatus(status="error", message="OPENAI_API_KEY not configured")
        critical_ok = False

    response_payload = HealthCheckResponse(
        overall_status="ok" if critical_ok else "error",
        uptime_seconds=process_time.monotonic() - PROCESS_START_TIME,
        components=component_statuses,
    )
    status_code = http_status.HTTP_200_OK if critical_ok else http_status.HTTP_503_SERVICE_UNAVAILABLE
    return Response(
        content=response_payload.model_dump_json(exclude_none=True),
        status_code=status_code,
        media_type="application/json",
    )
