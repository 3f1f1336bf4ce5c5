# granaapp/api/endpoints/chat.py

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse
from loguru import logger

from granaapp.core.exceptions import LLMServiceError, StoreUnavailableError
from granaapp.core.logging_config import trace_id_var
from granaapp.models.assistant import ChatRequest, ChatResponse, ErrorResponse
from granaapp.modules.assistant.services import AssistantService, get_assistant_service

router = APIRouter()


def error_response(status_code: int, error: str, details: str | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(error=error, details=details).model_dump(exclude_none=True),
    )


@router.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Assistant"],
    summary="Converse with the finance assistant (may create or query records)",
)
async def chat(
    chat_in: ChatRequest,
    assistant: AssistantService = Depends(get_assistant_service),
):
    log = logger.bind(trace_id=trace_id_var.get(), user_id=chat_in.user_id, api_endpoint="/chat POST")
    log.info(f"Received chat request with {len(chat_in.messages)} message(s).")

    if not chat_in.user_id:
        log.warning("Chat request without userId.")
        return error_response(status.HTTP_400_BAD_REQUEST, "userId é obrigatório.")
    if not chat_in.messages:
        return error_response(status.HTTP_400_BAD_REQUEST, "Envie ao menos uma mensagem.")
    if not assistant.llm_client.is_configured:
        log.error("Chat request rejected: OPENAI_API_KEY not configured.")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "OPENAI_API_KEY não configurada.")

    try:
        reply = await assistant.run_conversation(chat_in.messages, chat_in.user_id)
    except StoreUnavailableError as e:
        log.error(f"Store unavailable during chat: {e}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Banco de dados indisponível.", str(e))
    except LLMServiceError as e:
        log.error(f"LLM provider failed during chat: {e.message}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Não foi possível responder no momento.", e.message)
    except Exception as e:
        log.exception("Unexpected error while processing chat.")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Erro ao processar a conversa.", str(e))

    return ChatResponse(reply=reply)


@router.api_route("/chat", methods=["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def chat_method_not_allowed():
    response = error_response(status.HTTP_405_METHOD_NOT_ALLOWED, "Método não permitido.")
    response.headers["Allow"] = "POST"
    return response
