import json
from datetime import date
from typing import List, Dict, Any, Optional, Sequence

from fastapi import Depends
from loguru import logger

from granaapp.core.config import settings
from granaapp.core.exceptions import LLMServiceError
from granaapp.models.assistant import ChatMessage, ToolResult
from granaapp.modules.assistant.dispatcher import dispatch_tool_call, ToolAction
from granaapp.modules.assistant.tools import FUNCTION_DEFINITIONS
from granaapp.modules.finance.normalizers import utc_today
from granaapp.modules.finance.repository import FinanceRepository, get_finance_repository
from granaapp.services.llm_client import BaseLLMClient, get_llm_client

FALLBACK_REPLY = "Não consegui formular uma resposta agora."

SYSTEM_PROMPT_TEMPLATE = (
    "Você é o assistente financeiro do GranaApp. Responda sempre em português do Brasil, "
    "de forma curta e amigável. "
    "Use as funções disponíveis para registrar despesas, receitas, investimentos e horas extras, "
    "e para consultar resumos e detalhes financeiros do usuário. "
    "Valores monetários estão em reais (BRL). "
    "Hoje é {today}. Se o usuário não informar a data, use a data de hoje. "
    "Se faltar um campo obrigatório (como o valor) ou a mensagem for ambígua, peça esclarecimento "
    "antes de chamar qualquer função. Nunca invente valores. "
    "Depois de executar uma função, confirme o resultado para o usuário com base na mensagem retornada."
)


def build_system_prompt(today: Optional[date] = None) -> str:
    return SYSTEM_PROMPT_TEMPLATE.format(today=(today or utc_today()).isoformat())


class AssistantService:
    """Controla o ciclo LLM -> função -> banco -> LLM até a resposta final em texto."""

    def __init__(
        self,
        llm_client: BaseLLMClient,
        repository: FinanceRepository,
        max_tool_steps: int = settings.ASSISTANT_MAX_TOOL_STEPS,
        functions: Sequence[Dict[str, Any]] = FUNCTION_DEFINITIONS,
        action_map: Optional[Dict[str, ToolAction]] = None,
    ):
        self.llm_client = llm_client
        self.repository = repository
        self.max_tool_steps = max_tool_steps
        self.functions = list(functions)
        self.action_map = action_map

    def build_messages(self, history: Sequence[ChatMessage]) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": build_system_prompt()}]
        messages.extend({"role": turn.role, "content": turn.content} for turn in history)
        return messages

    async def run_conversation(self, history: Sequence[ChatMessage], user_id: str) -> str:
        log = logger.bind(service="AssistantService", user_id=user_id)
        messages = self.build_messages(history)
        log.info(f"Starting assistant loop ({len(history)} turns, max {self.max_tool_steps} tool steps).")

        tool_steps = 0
        while True:
            response = await self.llm_client.get_completion(messages=messages, functions=self.functions)
            if response.error:
                log.error(f"LLM returned error: {response.error.message}")
                raise LLMServiceError(response.error.message)

            message = response.message
            if message is None or message.function_call is None:
                reply = ((message.content if message else None) or "").strip()
                log.info(f"Assistant loop finished after {tool_steps} tool step(s).")
                return reply or FALLBACK_REPLY

            if tool_steps >= self.max_tool_steps:
                log.warning(f"Tool step limit reached ({self.max_tool_steps}); stopping loop.")
                return f"Não consegui concluir sua solicitação após {self.max_tool_steps} etapas."
            tool_steps += 1

            call = message.function_call
            log.info(f"LLM requested tool '{call.name}' (step {tool_steps}).")
            result: ToolResult = await dispatch_tool_call(
                call.name, call.arguments, user_id, self.repository, action_map=self.action_map
            )
            if not result.ok:
                log.info(f"Tool '{call.name}' failed; returning its error as final reply.")
                return result.error or FALLBACK_REPLY

            messages.append({
                "role": "assistant",
                "content": message.content,
                "function_call": {"name": call.name, "arguments": call.arguments},
            })
            messages.append({
                "role": "function",
                "name": call.name,
                "content": json.dumps(result.to_payload(), ensure_ascii=False, default=str),
            })


async def get_assistant_service(
    llm_client: BaseLLMClient = Depends(get_llm_client),
    repository: FinanceRepository = Depends(get_finance_repository),
) -> AssistantService:
    return AssistantService(llm_client=llm_client, repository=repository)
