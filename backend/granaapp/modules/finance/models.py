from pydantic import BaseModel, Field, ConfigDict
from typing import Optional, Dict, Literal, Tuple
from datetime import date, datetime

# --- Constants ---
OTHER = "other"

EXPENSE_CATEGORIES = ("food", "transport", "housing", "leisure", "health", OTHER)
REVENUE_CATEGORIES = ("salary", "freelance", "investment-income", OTHER)
INVESTMENT_TYPES = ("fixed-income", "equities", "funds", "crypto", OTHER)
PAYMENT_METHODS = ("cartao", "dinheiro", "pix", "boleto")

RESOURCES = Literal["expenses", "revenues", "investments", "overtime"]

UNSPECIFIED_BROKER = "não informado"
DEFAULT_OVERTIME_PERCENTAGE = 1.0

# Tabela de palavras-chave: categoria -> prefixos (sem acento, minúsculos)
KeywordTable = Dict[str, Tuple[str, ...]]

EXPENSE_KEYWORDS: KeywordTable = {
    "food": (
        "alimenta", "comida", "almoco", "jantar", "lanche", "cafe", "restaurante", "mercado",
        "supermercado", "padaria", "ifood", "pizza", "hamburguer", "acougue", "feira", "food",
    ),
    "transport": (
        "transporte", "uber", "taxi", "onibus", "metro", "gasolina", "combustivel", "etanol",
        "estacionamento", "pedagio", "passagem", "transport",
    ),
    "housing": (
        "moradia", "aluguel", "condominio", "conta de luz", "energia", "conta de agua",
        "internet", "iptu", "gas de cozinha", "housing",
    ),
    "leisure": (
        "lazer", "cinema", "show", "viagem", "netflix", "spotify", "streaming", "festa",
        "ingresso", "jogo", "leisure",
    ),
    "health": (
        "saude", "farmacia", "remedio", "medico", "consulta", "dentista", "exame", "hospital",
        "academia", "plano de saude", "health",
    ),
}

REVENUE_KEYWORDS: KeywordTable = {
    "salary": ("salario", "holerite", "contracheque", "pagamento mensal", "13o", "ferias", "salary"),
    "freelance": ("freela", "freelance", "bico", "projeto", "servico prestado", "job"),
    "investment-income": (
        "dividendo", "rendimento", "juros", "provento", "jcp", "investimento", "investment",
    ),
}

INVESTMENT_KEYWORDS: KeywordTable = {
    "fixed-income": ("renda fixa", "cdb", "lci", "lca", "tesouro", "poupanca", "debenture", "fixed"),
    "equities": ("acao", "acoes", "renda variavel", "bolsa", "b3", "stock", "equities"),
    "funds": ("fundo", "fii", "etf", "funds"),
    "crypto": ("cripto", "crypto", "bitcoin", "btc", "ethereum", "solana"),
}

PAYMENT_METHOD_KEYWORDS: KeywordTable = {
    "cartao": ("cartao", "credito", "debito", "card"),
    "dinheiro": ("dinheiro", "especie", "cash"),
    "pix": ("pix",),
    "boleto": ("boleto",),
}

CATEGORY_LABELS: Dict[str, str] = {
    "food": "alimentação",
    "transport": "transporte",
    "housing": "moradia",
    "leisure": "lazer",
    "health": "saúde",
    "salary": "salário",
    "freelance": "freelance",
    "investment-income": "rendimentos de investimentos",
    "fixed-income": "renda fixa",
    "equities": "renda variável",
    "funds": "fundos",
    "crypto": "criptomoedas",
    OTHER: "outros",
}


def category_label(category: Optional[str]) -> str:
    if not category:
        return CATEGORY_LABELS[OTHER]
    return CATEGORY_LABELS.get(category, category)


# --- Row models (insert payloads) ---

class FinanceRowBase(BaseModel):
    user_id: str

    model_config = ConfigDict(extra="ignore")

    def to_row(self) -> Dict:
        return self.model_dump(mode="json")


class ExpenseCreate(FinanceRowBase):
    value: float = Field(..., gt=0)
    date: date
    category: str = OTHER
    payment_method: Optional[str] = None
    description: Optional[str] = None


class RevenueCreate(FinanceRowBase):
    value: float = Field(..., gt=0)
    date: date
    category: str = OTHER
    description: Optional[str] = None


class InvestmentCreate(FinanceRowBase):
    value: float = Field(..., gt=0)
    investment_type: str = OTHER
    where_invested: str = UNSPECIFIED_BROKER
    date: date
    description: Optional[str] = None


class OvertimeCreate(FinanceRowBase):
    hourly_rate: float
    overtime_percentage: float = DEFAULT_OVERTIME_PERCENTAGE
    start_time: datetime
    end_time: datetime
    payment_date: date
    total_value: Optional[float] = None


# --- Resource routing ---

class ResourceRoute(BaseModel):
    """Tabela, coluna de data e campos usados por resumo/detalhes de um recurso."""
    resource: str
    table: str
    date_column: str
    value_field: str
    category_field: Optional[str]
    keywords: Optional[KeywordTable] = None
    canonical: Tuple[str, ...] = ()
    label_singular: str
    label_plural: str

    model_config = ConfigDict(frozen=True)


RESOURCE_ROUTES: Dict[str, ResourceRoute] = {
    "expenses": ResourceRoute(
        resource="expenses", table="expenses", date_column="date", value_field="value",
        category_field="category", keywords=EXPENSE_KEYWORDS, canonical=EXPENSE_CATEGORIES,
        label_singular="despesa", label_plural="despesas",
    ),
    "revenues": ResourceRoute(
        resource="revenues", table="incomes", date_column="date", value_field="value",
        category_field="category", keywords=REVENUE_KEYWORDS, canonical=REVENUE_CATEGORIES,
        label_singular="receita", label_plural="receitas",
    ),
    "investments": ResourceRoute(
        resource="investments", table="investments", date_column="date", value_field="value",
        category_field="investment_type", keywords=INVESTMENT_KEYWORDS, canonical=INVESTMENT_TYPES,
        label_singular="investimento", label_plural="investimentos",
    ),
    "overtime": ResourceRoute(
        resource="overtime", table="overtime_hours", date_column="payment_date", value_field="total_value",
        category_field=None, label_singular="registro de hora extra", label_plural="registros de hora extra",
    ),
}
