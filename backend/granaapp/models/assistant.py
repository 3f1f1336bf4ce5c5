# granaapp/models/assistant.py

from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Dict, Any, Literal

# --- Schemas de Request/Response de /chat ---

class ChatMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str = ""


class ChatRequest(BaseModel):
    messages: List[ChatMessage] = Field(default_factory=list)
    # Opcional no schema para responder 400 (e não 422) quando ausente
    user_id: Optional[str] = Field(None, alias="userId", description="Identificador opaco do dono dos registros.")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": "0f3c2a8e-6b1d-4c55-9a77-2a1f0d9e4b10",
                "messages": [{"role": "user", "content": "gastei 25 reais com lanche hoje"}],
            }
        },
    )


class ChatResponse(BaseModel):
    reply: str


class ErrorResponse(BaseModel):
    error: str
    details: Optional[str] = None


class TranscriptionRequest(BaseModel):
    audio: Optional[str] = Field(None, description="Áudio codificado em base64.")
    mime_type: Optional[str] = Field(None, alias="mimeType")

    model_config = ConfigDict(populate_by_name=True)


class TranscriptionResponse(BaseModel):
    text: str


# --- Envelope uniforme das ferramentas ---

class ToolResult(BaseModel):
    ok: bool
    type: Optional[str] = None
    data: Any = None
    message: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def success(cls, type: str, data: Any, message: str) -> "ToolResult":
        return cls(ok=True, type=type, data=data, message=message)

    @classmethod
    def failure(cls, error: str) -> "ToolResult":
        return cls(ok=False, error=error)

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


# --- Modelos internos para o LLM (não expostos via API) ---

class LLMFunctionCall(BaseModel):
    name: str
    arguments: str = "{}"  # LLM retorna como string JSON


class LLMResponseMessage(BaseModel):
    role: Literal["assistant"] = "assistant"
    content: Optional[str] = None
    function_call: Optional[LLMFunctionCall] = None


class LLMError(BaseModel):
    code: Optional[str] = None
    message: str
    type: Optional[str] = None
    param: Optional[str] = None


class LLMResponseChoice(BaseModel):
    index: int = 0
    message: LLMResponseMessage
    finish_reason: Optional[str] = None  # stop, length, function_call, content_filter


class LLMResponse(BaseModel):
    """Estrutura validada da resposta da API OpenAI Chat Completions."""
    id: str = ""
    object: str = "chat.completion"
    created: int = 0
    model: str = ""
    choices: List[LLMResponseChoice] = []
    usage: Optional[Dict[str, Any]] = None
    error: Optional[LLMError] = None

    @property
    def message(self) -> Optional[LLMResponseMessage]:
        return self.choices[0].message if self.choices else None
