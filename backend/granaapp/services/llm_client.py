# granaapp/services/llm_client.py

import httpx
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from functools import lru_cache
from typing import List, Dict, Any, Optional

from loguru import logger

from granaapp.core.config import settings
from granaapp.core.exceptions import LLMNotConfiguredError, LLMServiceError
from granaapp.models.assistant import LLMResponse, LLMError


class BaseLLMClient(ABC):
    provider_name: str

    @property
    @abstractmethod
    def is_configured(self) -> bool:
        ...

    @abstractmethod
    async def get_completion(
        self,
        messages: List[Dict[str, Any]],
        functions: Optional[List[Dict[str, Any]]] = None,
        function_call: str | Dict = "auto",
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        ...

    @abstractmethod
    async def transcribe(self, audio: bytes, filename: str, mime_type: Optional[str] = None) -> str:
        ...

    async def aclose(self) -> None:
        return None


class OpenAIClient(BaseLLMClient):
    provider_name = "OpenAI"

    def __init__(
        self,
        api_key: Optional[str] = settings.OPENAI_API_KEY,
        base_url: str = settings.OPENAI_API_URL,
        timeout: float = settings.OPENAI_TIMEOUT_SECONDS,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key or None
        self.base_url = base_url.rstrip("/")
        self.headers: Optional[Dict[str, str]] = None
        self.aclient: Optional[httpx.AsyncClient] = None
        if not self.api_key:
            logger.warning("OpenAI API key not configured. OpenAI features disabled.")
            return

        self.headers = {"Authorization": f"Bearer {self.api_key}"}
        self.aclient = httpx.AsyncClient(
            base_url=self.base_url,
            headers=self.headers,
            timeout=timeout,
            limits=httpx.Limits(max_connections=100, max_keepalive_connections=20),
            transport=transport,
        )
        logger.info(f"OpenAI Client initialized for API Key: ...{self.api_key[-4:]}")

    @property
    def is_configured(self) -> bool:
        return self.aclient is not None

    def _require_client(self) -> httpx.AsyncClient:
        if self.aclient is None:
            raise LLMNotConfiguredError("OPENAI_API_KEY não configurada.")
        return self.aclient

    async def get_completion(
        self,
        messages: List[Dict[str, Any]],
        functions: Optional[List[Dict[str, Any]]] = None,
        function_call: str | Dict = "auto",
        model: Optional[str] = None,
        temperature: Optional[float] = None,
    ) -> LLMResponse:
        """Chama a API Chat Completions da OpenAI (contrato `functions`)."""
        aclient = self._require_client()
        model = model or settings.OPENAI_CHAT_MODEL
        payload: Dict[str, Any] = {
            "model": model,
            "messages": messages,
            "temperature": settings.OPENAI_TEMPERATURE if temperature is None else temperature,
        }
        if functions:
            payload["functions"] = functions
            payload["function_call"] = function_call

        log = logger.bind(service="LLMClient", provider=self.provider_name, model=model)
        log.info(f"Sending request to OpenAI Chat Completions ({len(messages)} messages)...")
        if messages:
            log.debug(f"Last message start: '{str(messages[-1].get('content') or '')[:80]}...'")

        request_time = datetime.now(timezone.utc)
        created = int(request_time.timestamp())
        try:
            response = await aclient.post("/chat/completions", json=payload)
            duration = (datetime.now(timezone.utc) - request_time).total_seconds()
            log.debug(f"OpenAI Response Status: {response.status_code}, Duration: {duration:.3f}s")
            response.raise_for_status()
            response_data = response.json()
            log.trace(f"OpenAI Raw Response Body: {response_data}")
        except httpx.HTTPStatusError as http_err:
            log.error(f"HTTP Error {http_err.response.status_code} from OpenAI: {http_err.response.text[:500]}")
            error_details: Dict[str, Any] = {"message": f"HTTP error {http_err.response.status_code} from OpenAI"}
            try:
                error_details.update(http_err.response.json().get("error") or {})
            except ValueError:
                pass  # corpo do erro não é JSON
            return LLMResponse(id="error-http", object="error", created=created, model=model, error=LLMError.model_validate(error_details))
        except httpx.TimeoutException:
            log.error("Timeout error calling OpenAI API.")
            return LLMResponse(id="error-timeout", object="error", created=created, model=model, error=LLMError(message="Request to OpenAI API timed out."))
        except httpx.RequestError as req_err:
            log.error(f"Network/Request error calling OpenAI: {req_err}")
            return LLMResponse(id="error-request", object="error", created=created, model=model, error=LLMError(message=f"Network/Request error calling OpenAI: {req_err}"))

        try:
            llm_response = LLMResponse.model_validate(response_data)
        except ValueError as validation_error:
            log.exception(f"Error validating OpenAI response: {validation_error}")
            return LLMResponse(id="error-validation", object="error", created=created, model=model, error=LLMError(message=f"Failed to parse/validate OpenAI response: {validation_error}"))

        if not llm_response.choices and not llm_response.error:
            log.warning("OpenAI response OK but missing 'choices'.")
            llm_response.error = LLMError(message="OpenAI returned no choices.")

        log.info(f"OpenAI request successful. Finish Reason: {llm_response.choices[0].finish_reason if llm_response.choices else 'N/A'}")
        return llm_response

    async def transcribe(self, audio: bytes, filename: str, mime_type: Optional[str] = None) -> str:
        """Transcreve áudio via /audio/transcriptions. Levanta LLMServiceError em falha."""
        aclient = self._require_client()
        log = logger.bind(service="LLMClient", provider=self.provider_name, model=settings.OPENAI_TRANSCRIBE_MODEL)
        log.info(f"Sending audio for transcription ({len(audio)} bytes, file={filename})...")
        try:
            response = await aclient.post(
                "/audio/transcriptions",
                files={"file": (filename, audio, mime_type or "application/octet-stream")},
                data={
                    "model": settings.OPENAI_TRANSCRIBE_MODEL,
                    "response_format": "json",
                    "temperature": "0.2",
                },
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as http_err:
            log.error(f"HTTP Error {http_err.response.status_code} from OpenAI transcription: {http_err.response.text[:500]}")
            raise LLMServiceError(f"HTTP error {http_err.response.status_code} from OpenAI", status_code=http_err.response.status_code) from http_err
        except httpx.RequestError as req_err:
            log.error(f"Network/Request error calling OpenAI transcription: {req_err}")
            raise LLMServiceError(f"Network/Request error calling OpenAI: {req_err}") from req_err

        text = (response.json().get("text") or "").strip()
        log.info(f"Transcription successful ({len(text)} chars).")
        return text

    async def aclose(self) -> None:
        if self.aclient is not None:
            await self.aclient.aclose()
            logger.info("OpenAI HTTP client closed.")


@lru_cache()
def get_llm_client_instance(provider: str = "openai") -> BaseLLMClient:
    """Retorna a instância cacheada do cliente LLM solicitado."""
    provider_lower = provider.lower()
    if provider_lower == "openai":
        return OpenAIClient()
    logger.error(f"Provider LLM não suportado solicitado: '{provider}'")
    raise ValueError(f"Unsupported LLM provider: {provider}")


async def get_llm_client() -> BaseLLMClient:
    """FastAPI dependency: cliente LLM compartilhado pelo processo."""
    return get_llm_client_instance()
