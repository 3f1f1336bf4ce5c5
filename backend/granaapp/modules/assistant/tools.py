from typing import List, Dict, Any

from granaapp.modules.finance.models import (
    EXPENSE_CATEGORIES, REVENUE_CATEGORIES, INVESTMENT_TYPES, PAYMENT_METHODS,
)

_DATE = {"type": "string", "description": "Data no formato YYYY-MM-DD. Omitir para usar hoje."}
_FROM = {"type": "string", "description": "Início do período (YYYY-MM-DD). Padrão: primeiro dia do mês atual."}
_TO = {"type": "string", "description": "Fim do período (YYYY-MM-DD). Padrão: hoje."}
_RESOURCE = {
    "type": "string",
    "enum": ["expenses", "revenues", "investments", "overtime"],
    "description": "Tipo de registro: despesas, receitas, investimentos ou horas extras.",
}

FUNCTION_DEFINITIONS: List[Dict[str, Any]] = [
    {
        "name": "create_expense",
        "description": "Registra uma despesa do usuário.",
        "parameters": {
            "type": "object",
            "properties": {
                "amount": {"type": "number", "description": "Valor gasto em reais."},
                "category": {"type": "string", "enum": list(EXPENSE_CATEGORIES)},
                "description": {"type": "string", "description": "Descrição livre do gasto."},
                "payment_method": {"type": "string", "enum": list(PAYMENT_METHODS)},
                "date": _DATE,
            },
            "required": ["amount"],
        },
    },
    {
        "name": "create_revenue",
        "description": "Registra uma receita (entrada de dinheiro) do usuário.",
        "parameters": {
            "type": "object",
            "properties": {
                "amount": {"type": "number", "description": "Valor recebido em reais."},
                "category": {"type": "string", "enum": list(REVENUE_CATEGORIES)},
                "description": {"type": "string", "description": "Origem ou observação da receita."},
                "date": _DATE,
            },
            "required": ["amount"],
        },
    },
    {
        "name": "create_investment",
        "description": "Registra um aporte em investimento.",
        "parameters": {
            "type": "object",
            "properties": {
                "amount": {"type": "number", "description": "Valor aportado em reais."},
                "investment_type": {"type": "string", "enum": list(INVESTMENT_TYPES)},
                "where_invested": {"type": "string", "description": "Corretora, banco ou plataforma."},
                "description": {"type": "string"},
                "date": _DATE,
            },
            "required": ["amount"],
        },
    },
    {
        "name": "create_overtime",
        "description": "Registra horas extras trabalhadas.",
        "parameters": {
            "type": "object",
            "properties": {
                "hourly_rate": {"type": "number", "description": "Valor da hora normal em reais."},
                "overtime_percentage": {"type": "number", "description": "Adicional como fração: 1.0 = 100%, 0.75 = 75%."},
                "start_time": {"type": "string", "description": "Início (ISO 8601 ou HH:MM)."},
                "end_time": {"type": "string", "description": "Fim (ISO 8601 ou HH:MM)."},
                "payment_date": {"type": "string", "description": "Data prevista de pagamento (YYYY-MM-DD)."},
                "total_value": {"type": "number", "description": "Valor total, se o usuário informar."},
            },
            "required": ["hourly_rate"],
        },
    },
    {
        "name": "get_expense_summary",
        "description": "Soma as despesas do usuário no período, opcionalmente filtrando por categoria.",
        "parameters": {
            "type": "object",
            "properties": {
                "category": {"type": "string", "enum": list(EXPENSE_CATEGORIES)},
                "from": _FROM,
                "to": _TO,
            },
        },
    },
    {
        "name": "get_financial_summary",
        "description": "Soma e conta registros de despesas, receitas, investimentos ou horas extras no período.",
        "parameters": {
            "type": "object",
            "properties": {
                "resource": _RESOURCE,
                "category": {"type": "string", "description": "Categoria ou tipo para filtrar (opcional)."},
                "from": _FROM,
                "to": _TO,
            },
            "required": ["resource"],
        },
    },
    {
        "name": "get_financial_details",
        "description": "Lista os registros individuais mais recentes de um tipo no período.",
        "parameters": {
            "type": "object",
            "properties": {
                "resource": _RESOURCE,
                "category": {"type": "string", "description": "Categoria ou tipo para filtrar (opcional)."},
                "from": _FROM,
                "to": _TO,
                "limit": {"type": "integer", "minimum": 1, "maximum": 50, "description": "Quantidade máxima (padrão 20)."},
            },
            "required": ["resource"],
        },
    },
]
