# granaapp/api/endpoints/transcribe.py

import base64
import binascii

from fastapi import APIRouter, Depends, status
from loguru import logger

from granaapp.api.endpoints.chat import error_response
from granaapp.core.exceptions import LLMServiceError
from granaapp.core.logging_config import trace_id_var
from granaapp.models.assistant import TranscriptionRequest, TranscriptionResponse, ErrorResponse
from granaapp.services.llm_client import BaseLLMClient, get_llm_client

router = APIRouter()


def audio_extension(mime_type: str | None) -> str:
    mime = (mime_type or "").lower()
    if "mp3" in mime or "mpeg" in mime:
        return "mp3"
    if "wav" in mime:
        return "wav"
    return "webm"


@router.post(
    "/transcribe",
    response_model=TranscriptionResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
    tags=["Assistant"],
    summary="Transcribe a base64 voice note into text",
)
async def transcribe(
    payload: TranscriptionRequest,
    llm_client: BaseLLMClient = Depends(get_llm_client),
):
    log = logger.bind(trace_id=trace_id_var.get(), api_endpoint="/transcribe POST")

    if not llm_client.is_configured:
        log.error("Transcription rejected: OPENAI_API_KEY not configured.")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "OPENAI_API_KEY não configurada.")
    if not payload.audio:
        return error_response(status.HTTP_400_BAD_REQUEST, "Payload de áudio não recebido.")

    try:
        audio = base64.b64decode(payload.audio, validate=True)
    except (binascii.Error, ValueError):
        return error_response(status.HTTP_400_BAD_REQUEST, "Áudio em base64 inválido.")

    filename = f"granaapp-audio.{audio_extension(payload.mime_type)}"
    try:
        text = await llm_client.transcribe(audio, filename, payload.mime_type)
    except LLMServiceError as e:
        log.error(f"Transcription failed: {e.message}")
        return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, "Não foi possível transcrever o áudio.", e.message)

    return TranscriptionResponse(text=text)


@router.api_route("/transcribe", methods=["GET", "HEAD", "OPTIONS", "PUT", "PATCH", "DELETE"], include_in_schema=False)
async def transcribe_method_not_allowed():
    response = error_response(status.HTTP_405_METHOD_NOT_ALLOWED, "Método não suportado.")
    response.headers["Allow"] = "POST"
    return response
