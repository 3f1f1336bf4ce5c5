"""Coerção permissiva de valores, datas e categorias vindos do LLM.

Todas as funções aqui são puras: não tocam no banco nem no relógio, exceto
quando o chamador não informa `today`/`now`.
"""
import math
import re
import unicodedata
from datetime import date, datetime, time, timezone
from typing import Any, Iterable, Optional

from granaapp.modules.finance.models import KeywordTable, OTHER

_NON_NUMERIC = re.compile(r"[^0-9,.]")
_HH_MM = re.compile(r"^(\d{1,2}):(\d{2})(?::(\d{2}))?$")
_BR_DATE = re.compile(r"^(\d{1,2})/(\d{1,2})/(\d{4})$")


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def utc_today() -> date:
    return utc_now().date()


def fold_text(text: Optional[str]) -> str:
    """Minúsculas e sem acentos, para comparação por palavra-chave."""
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", str(text))
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch)).lower().strip()


def parse_amount(value: Any) -> Optional[float]:
    """Converte '1.234,56', 'R$ 25', 25 ou '25.5' em float. Retorna None se não der.

    Tudo que não é dígito, vírgula ou ponto é descartado antes da conversão.
    Com vírgula presente, pontos são separadores de milhar e a vírgula é decimal.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else None

    cleaned = _NON_NUMERIC.sub("", str(value))
    if not cleaned:
        return None
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    elif cleaned.count(".") > 1:
        cleaned = cleaned.replace(".", "")

    try:
        parsed = float(cleaned)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _matches_keyword(folded: str, keyword: str) -> bool:
    # prefixo no início de palavra: "alimenta" casa "alimentação", "acao" não casa "aplicação"
    return re.search(rf"(?<!\w){re.escape(keyword)}", folded) is not None


def match_keywords(text: Optional[str], keyword_table: KeywordTable) -> Optional[str]:
    folded = fold_text(text)
    if not folded:
        return None
    for category, keywords in keyword_table.items():
        if any(_matches_keyword(folded, fold_text(kw)) for kw in keywords):
            return category
    return None


def classify(
    text: Optional[str],
    keyword_table: KeywordTable,
    canonical: Iterable[str] = (),
    description: Optional[str] = None,
    default: str = OTHER,
) -> str:
    """Normaliza uma categoria livre para um membro do conjunto fechado.

    Ordem: palavra-chave na descrição, palavra-chave no campo explícito,
    nome canônico exato no campo explícito, e por fim `default`.
    """
    for candidate in (description, text):
        category = match_keywords(candidate, keyword_table)
        if category:
            return category

    folded = fold_text(text)
    for name in canonical:
        if folded == fold_text(name):
            return name
    return default


def parse_date(value: Any, today: Optional[date] = None) -> date:
    """Aceita YYYY-MM-DD (ou ISO datetime) e DD/MM/YYYY; vazio vira hoje (UTC)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return today or utc_today()
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    raw = str(value).strip()
    br_match = _BR_DATE.match(raw)
    try:
        if br_match:
            day, month, year = (int(part) for part in br_match.groups())
            return date(year, month, day)
        if len(raw) == 10:
            return date.fromisoformat(raw)
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).date()
    except ValueError as e:
        raise ValueError(f"Data inválida: {value}") from e


def parse_datetime(value: Any, now: Optional[datetime] = None) -> datetime:
    """Aceita ISO datetime ou HH:MM (combinado com a data de hoje); vazio vira agora."""
    current = now or utc_now()
    if value is None or (isinstance(value, str) and not value.strip()):
        return current
    if isinstance(value, datetime):
        return value

    raw = str(value).strip()
    hm_match = _HH_MM.match(raw)
    try:
        if hm_match:
            hours, minutes, seconds = hm_match.groups()
            clock = time(int(hours), int(minutes), int(seconds or 0))
            return datetime.combine(current.date(), clock, tzinfo=current.tzinfo)
        return datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError as e:
        raise ValueError(f"Horário inválido: {value}") from e


def normalize_percentage(value: Any, default: float) -> Optional[float]:
    """1.0 = 100%. Valores acima de 5 são lidos como pontos percentuais (75 -> 0.75)."""
    if value is None or (isinstance(value, str) and not value.strip()):
        return default
    parsed = parse_amount(value)
    if parsed is None:
        return None
    return parsed / 100 if parsed > 5 else parsed


def clamp_limit(value: Any, default: int = 20, minimum: int = 1, maximum: int = 50) -> int:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = int(float(value))
    except (TypeError, ValueError, OverflowError):
        return default
    return max(minimum, min(maximum, number))
