from pydantic import BaseModel, Field, ConfigDict
from typing import List, Optional, Dict, Any
from datetime import date

# --- Constants ---
ASSETS_TABLE = "ativos"
PRICE_HISTORY_TABLE = "historico_precos"
ASSETS_CONFLICT_KEY = "symbol"
PRICE_HISTORY_CONFLICT_KEY = "ativo_symbol,data_registro"

QUOTE_SOURCE = "Yahoo Finance"
DEFAULT_CURRENCY = "BRL"
BRAZILIAN_SUFFIX = ".SA"
USER_AGENT = "GranaApp/1.0 (+https://grana.app)"


# --- Rows (upsert payloads) ---

class AssetQuoteRow(BaseModel):
    symbol: str
    ultimo_preco: float
    variacao_percentual: Optional[float] = None
    moeda: str = DEFAULT_CURRENCY
    atualizado_em: str
    fonte: str = QUOTE_SOURCE

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class PriceHistoryRow(BaseModel):
    ativo_symbol: str
    preco: float
    variacao_percentual: Optional[float] = None
    moeda: str = DEFAULT_CURRENCY
    data_registro: date

    def to_row(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


# --- Provider / API results ---

class QuoteBatch(BaseModel):
    quotes: List[Dict[str, Any]] = Field(default_factory=list)
    unauthorized: bool = False


class QuoteUpdateResult(BaseModel):
    updated: int = 0
    history: int = 0
    batches: int = 0
    symbols: List[str] = Field(default_factory=list)
    unauthorized_symbols: List[str] = Field(default_factory=list, alias="unauthorizedSymbols")

    model_config = ConfigDict(populate_by_name=True)
