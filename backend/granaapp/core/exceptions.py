# granaapp/core/exceptions.py

from typing import Optional


class ToolError(Exception):
    """Falha de validação dentro de uma ferramenta; a mensagem vai direto para o chat."""

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class FinanceStoreError(Exception):
    """Erro devolvido pelo Supabase/PostgREST (constraint, conectividade...)."""

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.code = code


class StoreUnavailableError(RuntimeError):
    """Cliente Supabase não configurado ou não inicializado."""


class LLMNotConfiguredError(RuntimeError):
    """OPENAI_API_KEY ausente."""


class LLMServiceError(RuntimeError):
    """Falha na chamada ao provedor de LLM (HTTP, timeout, resposta inválida)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class QuoteProviderError(RuntimeError):
    """Falha ao consultar o provedor de cotações (Yahoo Finance / RapidAPI)."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
